async def join(communicator, guest_name):
    await communicator.send_json_to({"type": "join", "payload": {"guestName": guest_name}, "guestName": guest_name})
    return await communicator.receive_json_from()


async def send_update(communicator, payload):
    await communicator.send_json_to({"type": "update", "payload": payload})
