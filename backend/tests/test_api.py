from conftest import NAMESPACE, received


def _create(sio_client, **payload):
    sio_client.emit('create_room', payload, namespace=NAMESPACE)
    return received(sio_client, 'room_created')[0][1]


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_healthz(client):
    res = client.get('/healthz')
    assert res.status_code == 200
    assert res.get_data(as_text=True) == 'OK\n'


def test_list_rooms(client, make_sio_client):
    assert client.get('/api/rooms').get_json() == []
    ack = _create(make_sio_client(), playerName='Alice')
    rooms = client.get('/api/rooms').get_json()
    assert rooms == [{
        'roomId': ack['roomId'],
        'players': [{'name': 'Alice', 'color': 'white'}],
        'spectatorCount': 0,
        'hasPin': False,
        'gameOver': False,
    }]


def test_get_room_state(client, make_sio_client):
    ack = _create(make_sio_client(), playerName='Alice')
    res = client.get(f"/api/rooms/{ack['roomId'].lower()}")
    assert res.status_code == 200
    data = res.get_json()
    assert data['roomId'] == ack['roomId']
    assert data['gameState']['turn'] == 'white'


def test_get_room_with_pin_hides_state(client, make_sio_client):
    ack = _create(make_sio_client(), pin='9999')
    data = client.get(f"/api/rooms/{ack['roomId']}").get_json()
    assert data['hasPin'] is True
    assert 'gameState' not in data


def test_get_missing_room(client):
    res = client.get('/api/rooms/NOPE00')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}
