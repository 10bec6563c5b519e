"""User profiles under users/{user_id}: first/last seen, for counts and activity stats."""
from __future__ import annotations

from pydantic import BaseModel

from nightpass.store import keys
from nightpass.store.base import EntitlementStore, Record
from nightpass.utils.time import Clock, now_ms

DAY_MS = 24 * 60 * 60 * 1000


class UserProfile(BaseModel):
    user_id: str
    display_name: str = ""
    first_seen: int
    last_seen: int


class UserService:
    def __init__(self, store: EntitlementStore, clock: Clock = now_ms) -> None:
        self.store = store
        self._clock = clock

    def track(self, user_id: str, display_name: str | None = None) -> UserProfile:
        """Create the profile on first sight, refresh last_seen and display name after."""
        user_id = str(user_id)
        now = self._clock()

        def _touch(current: Record | None) -> Record:
            if current is None:
                profile = UserProfile(
                    user_id=user_id,
                    display_name=display_name or "",
                    first_seen=now,
                    last_seen=now,
                )
            else:
                profile = UserProfile.model_validate(current)
                updates: dict = {"last_seen": max(profile.last_seen, now)}
                if display_name:
                    updates["display_name"] = display_name
                profile = profile.model_copy(update=updates)
            return profile.model_dump(mode="json")

        return UserProfile.model_validate(self.store.atomic_update(keys.user_profile_key(user_id), _touch))

    def get(self, user_id: str) -> UserProfile | None:
        raw = self.store.get(keys.user_profile_key(str(user_id)))
        return UserProfile.model_validate(raw) if raw else None

    def counts(self, active_days: int = 30) -> dict[str, int]:
        """Total users and users seen within the last ``active_days``."""
        cutoff = self._clock() - active_days * DAY_MS
        total = 0
        active = 0
        for _, raw in self.store.scan(keys.USERS):
            total += 1
            if raw.get("last_seen", 0) > cutoff:
                active += 1
        return {"user_count": total, "active_users": active}
