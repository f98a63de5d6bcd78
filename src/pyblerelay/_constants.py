"""Internal constants shared across the library."""

BASE_URL = "http://localhost:4000"
EVENTS_ENDPOINT = "/api/events"
EVENTS_BATCH_ENDPOINT = "/api/events/batch"
USER_AGENT = "pyblerelay"

DEVICE_ID_PREFIX = "web-"
DEVICE_ID_KEY = "device_id"

#: Socket.IO event the server emits for every newly stored event.
NEW_EVENT_LABEL = "event:new"
SOCKETIO_PATH = "socket.io"

#: Fallback device-id prefix for relayed adverts lacking an explicit id.
ADVERT_ID_PREFIX = "adv-"
