USERS_COLLECTION = "users"
PARTNERSHIPS_COLLECTION = "partnerships"
PARTNERSHIP_MEMBERS_FIELD = "members"

# Everything a user owns below users/{uid}.
USER_SUBCOLLECTIONS = ("transactions", "cards", "categories", "reserves", "settings")


def join_path(*segments: str) -> str:
    parts: list[str] = []
    for segment in segments:
        parts.extend(part for part in segment.split("/") if part)
    return "/".join(parts)


def user_path(user_id: str) -> str:
    return join_path(USERS_COLLECTION, user_id)


def user_collection_path(user_id: str, name: str) -> str:
    return join_path(USERS_COLLECTION, user_id, name)


def parent_path(path: str) -> str:
    segments = path.split("/")
    return "/".join(segments[:-1])


def owner_of(document_path: str) -> str | None:
    """Return the uid for ``users/{uid}/<collection>/<doc>``, else None."""
    segments = document_path.split("/")
    if len(segments) == 4 and segments[0] == USERS_COLLECTION:
        return segments[1]
    return None
