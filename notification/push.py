"""
Web push delivery and subscription lifecycle.

Subscriptions live in ``groups/<groupId>/notifications/subscriptions/web-push.json``
as ``{userId: [device, ...]}``. Older files hold a single device object per
user; those are read as one-element lists and rewritten in list form on the
next change.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.exceptions import PushDeliveryError, PushGoneError, ValidationError
from notification.channels import PushProvider

logger = logging.getLogger(__name__)


@dataclass
class PushMessage:
    title: str
    body: str
    url: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


@dataclass
class PushOutcome:
    delivered: int = 0
    expired: int = 0
    status: str = "sent"

    @property
    def success(self) -> bool:
        return self.delivered > 0

    @classmethod
    def no_subscription(cls) -> "PushOutcome":
        return cls(status="no_subscription")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PushDeliveryService:
    def __init__(
        self,
        store,
        provider: PushProvider,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.provider = provider
        self.clock = clock

    @staticmethod
    def _key(group_id: str) -> tuple:
        return ("groups", group_id, "notifications", "subscriptions", "web-push.json")

    def _load_all(self, group_id: str) -> Dict[str, Any]:
        data = self.store.read_json(*self._key(group_id), default={})
        return data if isinstance(data, dict) else {}

    def _save_all(self, group_id: str, data: Dict[str, Any]) -> None:
        self.store.write_json(*self._key(group_id), value=data)

    @staticmethod
    def _devices(value: Any) -> List[Dict[str, Any]]:
        if isinstance(value, list):
            return [d for d in value if isinstance(d, dict) and d.get("subscription")]
        if isinstance(value, dict) and value.get("subscription"):
            return [value]
        return []

    def get_subscriptions(self, group_id: str, user_id: str) -> List[Dict[str, Any]]:
        return self._devices(self._load_all(group_id).get(user_id))

    def subscribe(self, group_id: str, user_id: str, subscription: Dict[str, Any]) -> Dict[str, Any]:
        """Add a device, or renew it if the endpoint is already registered."""
        endpoint = (subscription or {}).get("endpoint")
        if not endpoint:
            raise ValidationError("Push subscription requires an endpoint")

        data = self._load_all(group_id)
        devices = self._devices(data.get(user_id))

        for device in devices:
            if device["subscription"].get("endpoint") == endpoint:
                device["subscription"] = subscription
                device["renewalCount"] = device.get("renewalCount", 0) + 1
                device["lastRenewal"] = _now_iso()
                logger.info(f"Renewed push subscription for {user_id} in {group_id}")
                break
        else:
            device = {
                "subscription": subscription,
                "timestamp": _now_iso(),
                "renewalCount": 0,
                "lastRenewal": None,
            }
            devices.append(device)
            logger.info(f"Added push device for {user_id} in {group_id} ({len(devices)} total)")

        data[user_id] = devices
        self._save_all(group_id, data)
        return device

    def unsubscribe(self, group_id: str, user_id: str, endpoint: Optional[str] = None) -> int:
        """Remove one device (by endpoint) or all of them. Returns the number removed."""
        data = self._load_all(group_id)
        devices = self._devices(data.get(user_id))
        if endpoint is None:
            kept = []
        else:
            kept = [d for d in devices if d["subscription"].get("endpoint") != endpoint]

        removed = len(devices) - len(kept)
        if user_id in data:
            if kept:
                data[user_id] = kept
            else:
                del data[user_id]
            self._save_all(group_id, data)
        return removed

    def _prune(self, group_id: str, user_id: str, endpoints: List[str]) -> None:
        # Re-read so devices added during the send are not lost
        data = self._load_all(group_id)
        kept = [
            d for d in self._devices(data.get(user_id))
            if d["subscription"].get("endpoint") not in endpoints
        ]
        if kept:
            data[user_id] = kept
        else:
            data.pop(user_id, None)
        self._save_all(group_id, data)
        logger.info(f"Pruned {len(endpoints)} expired push device(s) for {user_id} in {group_id}")

    def build_payload(self, message: PushMessage) -> str:
        payload: Dict[str, Any] = {"title": message.title, "body": message.body}
        if message.url:
            payload["url"] = message.url
        if message.data:
            payload["data"] = message.data
        payload["timestamp"] = int(self.clock() * 1000)
        return json.dumps(payload, ensure_ascii=False)

    def send(self, group_id: str, user_id: str, message: PushMessage) -> PushOutcome:
        """
        Send to every device of a user.

        Devices reported gone are pruned. If any device failed for another
        reason the first such error is re-raised after pruning.
        """
        devices = self.get_subscriptions(group_id, user_id)
        if not devices:
            logger.debug(f"No push subscription for {user_id} in {group_id}")
            return PushOutcome.no_subscription()

        payload_json = self.build_payload(message)
        outcome = PushOutcome()
        gone: List[str] = []
        first_error: Optional[PushDeliveryError] = None

        for device in devices:
            subscription = device["subscription"]
            try:
                self.provider.send(subscription, payload_json)
                outcome.delivered += 1
            except PushGoneError:
                gone.append(subscription.get("endpoint"))
                outcome.expired += 1
            except PushDeliveryError as e:
                logger.warning(f"Push delivery failed for {user_id}: {e}")
                if first_error is None:
                    first_error = e

        if gone:
            self._prune(group_id, user_id, gone)

        if first_error is not None:
            raise first_error

        if outcome.delivered == 0 and outcome.expired:
            outcome.status = "expired"
        return outcome
