def test_default_consent(client, headers):
    response = client.get('/api/consent', headers=headers)
    assert response.status_code == 200
    consent = response.get_json()['data']['consent']
    assert consent['essential'] is True
    assert consent['analytics'] is True
    assert consent['communications'] is False
    assert consent['research'] is False
    assert consent['consentVersion'] == '1.0'


def test_update_consent_records_history(client, headers):
    response = client.put('/api/consent', headers=headers,
                          json={'research': True, 'analytics': True, 'essential': False},
                          environ_base={'REMOTE_ADDR': '10.1.2.3'})
    assert response.status_code == 200
    consent = response.get_json()['data']['consent']
    assert consent['research'] is True
    assert consent['essential'] is True

    client.put('/api/consent', headers=headers, json={'communications': True})

    history = client.get('/api/consent/history', headers=headers).get_json()['data']['history']
    assert [entry['consentType'] for entry in history] == ['communications', 'research']
    assert all(set(entry) == {'consentType', 'granted', 'timestamp'} for entry in history)


def test_update_consent_is_visible_through_cache(client, headers):
    assert client.get('/api/consent', headers=headers).headers['X-Cache'] == 'MISS'
    assert client.get('/api/consent', headers=headers).headers['X-Cache'] == 'HIT'

    client.put('/api/consent', headers=headers, json={'communications': True})

    response = client.get('/api/consent', headers=headers)
    assert response.headers['X-Cache'] == 'MISS'
    assert response.get_json()['data']['consent']['communications'] is True


def test_update_consent_validation(client, headers):
    response = client.put('/api/consent', headers=headers, json={'research': 'maybe'})
    assert response.status_code == 400
    assert 'research' in response.get_json()['error']['details']


def test_withdraw_all(client, headers):
    client.put('/api/consent', headers=headers, json={'research': True, 'communications': True})

    response = client.post('/api/consent/withdraw-all', headers=headers)
    assert response.status_code == 200
    consent = response.get_json()['data']['consent']
    assert consent['essential'] is True
    assert not any(consent[t] for t in ('analytics', 'communications', 'research'))

    history = client.get('/api/consent/history', headers=headers).get_json()['data']['history']
    assert len(history) == 5
    assert all(entry['granted'] is False for entry in history[:3])


def test_consent_is_per_user(client, headers):
    from conftest import auth_headers

    other = auth_headers(client, email='bob@example.com')
    client.put('/api/consent', headers=other, json={'research': True})

    consent = client.get('/api/consent', headers=headers).get_json()['data']['consent']
    assert consent['research'] is False
