from bson import ObjectId


def new_id() -> str:
    """Unique id whose hex order follows creation order within a process."""
    return str(ObjectId())
