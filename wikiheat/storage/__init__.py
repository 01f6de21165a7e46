"""wikiheat.storage: local persistence for tracked pages."""
