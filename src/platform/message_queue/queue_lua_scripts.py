"""
Lua scripts backing the Redis queue

Each queue transition (enqueue, reserve, complete, fail, remove) runs as one
script so that the job hash and the wait / delayed / active / history
structures never disagree. Scripts are loaded with redis-py's register_script().
"""

from pathlib import Path
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import NoScriptError

from src.platform.constant.path import QUEUE_LUA_DIR
from src.platform.logging.loguru_io import Logger


QUEUE_SCRIPT_NAMES = ('enqueue', 'reserve', 'complete', 'fail', 'remove')


class QueueLuaScripts:
    """Manages queue Lua scripts using redis-py's register_script()"""

    def __init__(self, *, lua_dir: Path = QUEUE_LUA_DIR) -> None:
        self._lua_dir = lua_dir
        self._sources: dict[str, str] = {}
        self._scripts: dict[str, Any] = {}

    def initialize(self, *, client: Redis) -> None:
        """Load Lua scripts (idempotent)"""
        if self._scripts:
            return

        for name in QUEUE_SCRIPT_NAMES:
            path = self._lua_dir / f'{name}.lua'
            # A missing script is a packaging bug, not something to run without
            self._sources[name] = path.read_text()
            self._scripts[name] = client.register_script(self._sources[name])

        Logger.base.info(f'🔥 [LUA] Queue scripts loaded: {", ".join(QUEUE_SCRIPT_NAMES)}')

    async def run(self, name: str, *, client: Redis, keys: list[str], args: list[Any]) -> Any:
        """Execute a queue script with auto-retry on NoScriptError"""
        if name not in self._scripts:
            raise RuntimeError('Queue Lua scripts not initialized')

        try:
            return await self._scripts[name](keys=keys, args=args, client=client)
        except NoScriptError:
            Logger.base.warning(f'⚠️ [LUA] {name} not found, re-registering...')
            self._scripts[name] = client.register_script(self._sources[name])
            return await self._scripts[name](keys=keys, args=args, client=client)
