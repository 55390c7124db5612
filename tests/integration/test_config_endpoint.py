import asyncio

from nlu_gateway.config import RuntimeConfig, settings
from nlu_gateway.main import application as gateway_app


async def test_config_acknowledges(gateway_client):
    resp = await gateway_client.post('/config', json={'url': 'https://x.example/api'})

    assert resp.status_code == 200
    assert resp.json() == {'status': 'OK'}


async def test_config_redirects_subsequent_relays(gateway_client, fake_upstream):
    await gateway_client.post('/config', json={'url': 'https://x.example/api', 'appKey': 'K1'})

    resp = await gateway_client.get('/entities')

    assert resp.status_code == 200
    sent = fake_upstream.calls[-1]
    assert str(sent.url) == 'https://x.example/api/entities'
    assert sent.headers['authorization'] == 'Bearer K1'


async def test_empty_config_resets_to_startup_values(gateway_client, fake_upstream):
    await gateway_client.post('/config', json={'url': 'https://x.example/api', 'appKey': 'K1'})
    await gateway_client.post('/config', json={})

    await gateway_client.get('/entities')

    sent = fake_upstream.calls[-1]
    assert str(sent.url) == settings.base_url + '/entities'
    assert sent.headers['authorization'] == 'Bearer ' + settings.app_key


async def test_partial_config_does_not_keep_previous_values(gateway_client, fake_upstream):
    await gateway_client.post('/config', json={'url': 'https://x.example/api', 'appKey': 'K1'})
    await gateway_client.post('/config', json={'appKey': 'K2'})

    await gateway_client.post('/publish/abc', json={})

    sent = fake_upstream.calls[-1]
    assert str(sent.url) == settings.base_url + '/abc/publish'
    assert sent.headers['ocp-apim-subscription-key'] == 'K2'


async def test_config_accepts_form_encoded_payload(gateway_client):
    await gateway_client.post('/config', data={'url': 'https://form.example', 'appId': 'A9'})

    current = gateway_app.state.config_store.snapshot()
    assert current.base_url == 'https://form.example'
    assert current.app_id == 'A9'
    assert current.app_key == settings.app_key


async def test_config_without_body_resets(gateway_client):
    await gateway_client.post('/config', json={'url': 'https://x.example/api'})
    resp = await gateway_client.post('/config')

    assert resp.status_code == 200
    assert gateway_app.state.config_store.snapshot() == settings.startup_config()


async def test_concurrent_config_and_relays(gateway_client, fake_upstream):
    """Test: concurrent writes and relays never crash, and last write wins as a whole."""
    writes = [
        {'url': f'https://host{i}.example/api', 'appId': f'app{i}', 'appKey': f'key{i}'}
        for i in range(10)
    ]
    written = {
        RuntimeConfig(base_url=w['url'], app_id=w['appId'], app_key=w['appKey'])
        for w in writes
    }

    calls = []
    for payload in writes:
        calls.append(gateway_client.post('/config', json=payload))
        calls.append(gateway_client.get('/entities'))
    responses = await asyncio.gather(*calls)

    assert all(resp.status_code == 200 for resp in responses)
    assert gateway_app.state.config_store.snapshot() in written

    startup = settings.startup_config()
    seen = {(startup.base_url, startup.app_key)} | {(c.base_url, c.app_key) for c in written}
    for sent in fake_upstream.calls:
        base_url = str(sent.url)[:-len('/entities')]
        key = sent.headers['authorization'][len('Bearer '):]
        assert (base_url, key) in seen
