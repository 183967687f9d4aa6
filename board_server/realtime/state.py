from __future__ import annotations

import copy
from typing import Any, Dict, List, Set

from pydantic import BaseModel, Field


class SessionState(BaseModel):
    """Authoritative last-known board content for one session."""

    strokes: List[Any] = Field(default_factory=list)
    textboxes: List[Any] = Field(default_factory=list)
    zoomLevel: float = 1.0
    codeText: str = ""
    codeLanguage: str = ""
    guests: Set[str] = Field(default_factory=set)

    def apply(self, changes: Dict[str, Any]) -> None:
        """Field-level last-writer-wins: each present field replaces the stored value wholesale."""
        for name, value in changes.items():
            setattr(self, name, copy.deepcopy(value))

    def add_guest(self, guest_name: str) -> bool:
        if guest_name in self.guests:
            return False
        self.guests.add(guest_name)
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "strokes": copy.deepcopy(self.strokes),
            "textboxes": copy.deepcopy(self.textboxes),
            "zoomLevel": self.zoomLevel,
            "codeText": self.codeText,
            "codeLanguage": self.codeLanguage,
            "guests": sorted(self.guests),
        }
