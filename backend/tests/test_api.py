def test_health(client, flask_app):
    res = client.get('/api/health')
    assert res.status_code == 200
    body = res.get_json()
    assert body['status'] == 'ok'
    assert body['roomCode'] == flask_app.extensions['crowd'].state.room_code


def test_current_room_has_join_url(client, flask_app):
    code = flask_app.extensions['crowd'].state.room_code

    body = client.get('/api/room').get_json()

    assert body['roomCode'] == code
    assert body['valid'] is True
    assert body['joinUrl'] == f'http://crowd.test:3000/?room={code}'


def test_validate_room_endpoint(client, flask_app):
    code = flask_app.extensions['crowd'].state.room_code

    ok = client.get(f'/api/room/{code.lower()}/validate').get_json()
    assert ok == {'roomCode': code, 'valid': True, 'status': 'active'}

    other = 'ZZZZ' if code != 'ZZZZ' else 'YYYY'
    missing = client.get(f'/api/room/{other}/validate').get_json()
    assert missing['valid'] is False
    assert missing['status'] is None


def test_room_missing_after_close(client, flask_app):
    flask_app.extensions['crowd'].close()

    res = client.get('/api/room')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'room_not_found'}


def test_game_state_endpoint(client):
    body = client.get('/api/game-state').get_json()
    assert body['phase'] == 'lobby'
    assert body['players'] == []
    assert body['canStart'] is False
