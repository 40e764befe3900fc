from typing import Any, Dict

from chatsync.database.store import RemoteStore, deep_get, split_path


class MemoryStore(RemoteStore):
    """In-process tree store.

    None of the primitives suspend, so a write and the notification of its
    subscribers happen as one step on the event loop.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._root: Dict[str, Any] = {}

    async def _read(self, path: str) -> Any:
        return deep_get(self._root, split_path(path))

    async def _write(self, path: str, value: Any) -> None:
        parts = split_path(path)
        if value is None:
            self._delete(parts)
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    async def _update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        current = deep_get(self._root, split_path(path))
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(fields)
        await self._write(path, merged)
        return merged

    def _delete(self, parts) -> None:
        trail = []
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                return
            trail.append((node, part))
            node = child
        node.pop(parts[-1], None)
        # prune parents left empty
        while trail and not node:
            parent, key = trail.pop()
            parent.pop(key, None)
            node = parent
