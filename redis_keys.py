REDIS_ROOM_SEQ_KEY = "{prefix}:rooms:seq" # counter - next registry id
REDIS_ROOM_IDS_KEY = "{prefix}:rooms:ids" # hash - room name -> registry id (unique names)
REDIS_HISTORY_KEY = "{prefix}:room:history:{slug}" # room name - list of chat message JSON blobs

# **Example `{prefix}:room:history:{name}` entry**
# - `{"username": "User42", "message": "hi", "timestamp": 1760860800000}`
# - entries are appended with RPUSH, so list order is send order
