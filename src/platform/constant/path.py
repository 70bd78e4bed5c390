from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent

LOG_DIR = BASE_DIR / 'logs'

# SQL migrations and seed files applied by the bootstrap runner
DATABASE_DIR = BASE_DIR / 'database'

# Lua scripts backing the Redis queue
QUEUE_LUA_DIR = Path(__file__).resolve().parent.parent / 'message_queue' / 'lua'
