"""
Canal de diffusion in-process, équivalent du BroadcastChannel navigateur.
- un canal nommé ne reçoit pas ses propres messages
- l'admin poste {"type": "job-updated"} après chaque mutation réussie
- le synchroniseur TV (même process) déclenche alors un re-fetch immédiat

Transport: un django.dispatch.Signal partagé; chaque canal ouvert y est
connecté et filtre par nom de canal et par émetteur.
"""
import logging
from typing import Callable, List, Optional

from django.conf import settings
from django.dispatch import Signal

logger = logging.getLogger(__name__)

JOB_UPDATED = "job-updated"

Handler = Callable[[dict], None]

# kwargs: channel (nom), message (dict)
broadcast_message = Signal()


class BroadcastChannel:
    def __init__(self, name: str, signal: Optional[Signal] = None) -> None:
        self.name = name
        self._signal = signal or broadcast_message
        self._handlers: List[Handler] = []
        self._uid = f"broadcast:{name}:{id(self)}"
        self.closed = False
        self._signal.connect(self._receive, weak=False, dispatch_uid=self._uid)

    def add_listener(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def remove_listener(self, handler: Handler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def post_message(self, message: dict) -> int:
        """Diffuse aux autres canaux du même nom; renvoie le nombre de canaux servis."""
        if self.closed:
            raise RuntimeError(f"Broadcast channel '{self.name}' is closed")
        delivered = 0
        for _receiver, response in self._signal.send_robust(sender=self, channel=self.name, message=message):
            if isinstance(response, Exception):
                logger.error("Broadcast listener failed on channel %s", self.name, exc_info=response)
            elif response:
                delivered += 1
        return delivered

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._handlers.clear()
        self._signal.disconnect(dispatch_uid=self._uid)

    def _receive(self, sender, channel: str, message: dict, **kwargs) -> bool:
        if sender is self or channel != self.name or self.closed:
            return False
        for handler in list(self._handlers):
            handler(message)
        return True

    def __enter__(self) -> "BroadcastChannel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def publish_job_updated(signal: Optional[Signal] = None) -> int:
    name = settings.SVB_DISPLAY["BROADCAST_CHANNEL"]
    with BroadcastChannel(name, signal=signal) as channel:
        return channel.post_message({"type": JOB_UPDATED})
