def _names(received):
    return [pkt['name'] for pkt in received]


def _last(received, name):
    found = [pkt['args'][0] for pkt in received if pkt['name'] == name]
    return found[-1] if found else None


def _join(socketio, flask_app, name):
    code = flask_app.extensions['crowd'].state.room_code
    player = socketio.test_client(flask_app)
    ack = player.emit('join_room', {'name': name, 'roomCode': f' {code.lower()} '}, callback=True)
    assert ack == {'ok': True}
    return player


def test_display_receives_game_state(sio_client, flask_app):
    sio_client.get_received()

    sio_client.emit('join_as_display')

    state = _last(sio_client.get_received(), 'game_state')
    assert state['roomCode'] == flask_app.extensions['crowd'].state.room_code
    assert state['phase'] == 'lobby'


def test_join_room_errors_go_to_the_caller_only(sio_client, socketio, flask_app):
    ann = _join(socketio, flask_app, 'Ann')
    ann.get_received()

    code = flask_app.extensions['crowd'].state.room_code
    other = 'QQQQ' if code != 'QQQQ' else 'ZZZZ'
    ack = sio_client.emit('join_room', {'name': 'Bob', 'roomCode': other}, callback=True)

    assert ack['ok'] is False
    assert _last(sio_client.get_received(), 'join_error') == {'message': 'Invalid room code'}
    assert 'join_error' not in _names(ann.get_received())


def test_players_see_each_other_join(socketio, flask_app):
    ann = _join(socketio, flask_app, 'Ann')
    joined = _last(ann.get_received(), 'room_joined')
    assert joined['player']['isHost'] is True
    assert joined['player']['sessionToken']

    _join(socketio, flask_app, 'Ben')
    update = _last(ann.get_received(), 'player_joined')
    assert update['player']['name'] == 'Ben'
    assert update['canStart'] is False


def test_game_flow_over_sockets(socketio, flask_app, scheduler):
    ann = _join(socketio, flask_app, 'Ann')
    ben = _join(socketio, flask_app, 'Ben')
    cat = _join(socketio, flask_app, 'Cat')

    ack = ben.emit('start_game', callback=True)
    assert ack == {'ok': False, 'error': 'Only the host can start the game'}
    assert _last(ben.get_received(), 'error') == {'message': 'Only the host can start the game'}

    ann.emit('start_game')
    scheduler.run_pending()
    received = ann.get_received()
    assert _last(received, 'phase_changed')['phase'] == 'theme_select'
    themes = _last(received, 'themes_generated')['themes']

    ann.emit('host_select_theme', {'theme': themes[1]})
    assert _last(cat.get_received(), 'theme_selected')['theme'] == themes[1]

    ben.emit('submit_answer', {'answer': '  pancakes  '})
    assert _last(ben.get_received(), 'answer_submitted') == {'answer': 'pancakes'}
    cat.emit('submit_answer', {'answer': 'waffles'})

    payload = _last(ann.get_received(), 'matching_phase_start')
    assert sorted(a['answer'] for a in payload['answers']) == ['pancakes', 'waffles']

    orch = flask_app.extensions['crowd']
    matches = [{'answerIndex': s.index, 'playerId': s.player_id} for s in orch.state.shuffled_answers]
    ann.emit('host_submit_matches', {'matches': matches})
    assert _last(ben.get_received(), 'matches_submitted')['host']['name'] == 'Ann'

    scheduler.advance(5 + 3 * 2)
    end = _last(cat.get_received(), 'round_end')
    assert end['hostScore']['isPerfect'] is True
    assert end['nextHost']['name'] == 'Ben'

    cat.emit('next_round')
    assert orch.state.current_host().name == 'Ben'


def test_disconnect_and_reconnect(socketio, flask_app):
    ann = _join(socketio, flask_app, 'Ann')
    ben = _join(socketio, flask_app, 'Ben')
    token = _last(ben.get_received(), 'room_joined')['player']
    ann.get_received()

    ben.disconnect()
    gone = _last(ann.get_received(), 'player_disconnected')
    assert gone['playerName'] == 'Ben'
    assert gone['mayReconnect'] is True

    again = socketio.test_client(flask_app)
    ack = again.emit('reconnect_player', {'playerId': token['id'], 'sessionToken': 'nope'}, callback=True)
    assert ack == {'ok': False}
    assert _last(again.get_received(), 'reconnect_failed') == {'message': 'Session expired'}

    again.emit('reconnect_player', {'playerId': token['id'], 'sessionToken': token['sessionToken']})
    restored = _last(again.get_received(), 'reconnected')
    assert restored['player']['name'] == 'Ben'
    assert restored['gameState']['phase'] == 'lobby'
    assert _last(ann.get_received(), 'player_reconnected')['playerName'] == 'Ben'


def test_get_game_state_event(sio_client):
    sio_client.get_received()
    ack = sio_client.emit('get_game_state', callback=True)
    assert ack == {'ok': True}
    assert _last(sio_client.get_received(), 'game_state')['phase'] == 'lobby'
