import click
from flask.cli import with_appcontext

from sympto.extensions import db
from sympto.repositories.user_repo import user_repository, ENCRYPTED_FIELDS
from sympto.utils.encryption_util import encryptor, generate_key, is_encrypted_value


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables."""
    db.create_all()
    click.echo("Database initialized successfully!")


@click.command('generate-keys')
def generate_keys_command():
    """Print fresh secrets for a .env file."""
    click.echo("# Add these to your .env file. Never commit them.")
    click.echo(f"ENCRYPTION_KEY={generate_key()}")
    click.echo(f"JWT_SECRET_KEY={generate_key()}{generate_key()}")
    click.echo(f"SECRET_KEY={generate_key()}")


def find_undecryptable_users():
    """Users with at least one encrypted field the current key cannot open."""
    broken = []
    for user in user_repository.list_raw():
        failed = [
            field for field in ENCRYPTED_FIELDS
            if is_encrypted_value(getattr(user, field)) and not encryptor.try_decrypt(getattr(user, field)).ok
        ]
        if failed:
            broken.append((user, failed))
    return broken


@click.command('scan-undecryptable')
@click.option('--delete', 'delete', is_flag=True, help='Delete the accounts that cannot be decrypted.')
@with_appcontext
def scan_undecryptable_command(delete):
    """Report accounts whose encrypted fields cannot be decrypted with the current key."""
    broken = find_undecryptable_users()
    if not broken:
        click.echo("All encrypted user fields decrypt with the current key.")
        return

    for user, fields in broken:
        click.echo(f"User {user.id} <{user.email}>: cannot decrypt {', '.join(fields)}")
    click.echo(f"{len(broken)} account(s) affected.")

    if delete:
        for user, _ in broken:
            db.session.delete(user)
        db.session.commit()
        click.echo(f"Deleted {len(broken)} account(s).")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(generate_keys_command)
    app.cli.add_command(scan_undecryptable_command)
