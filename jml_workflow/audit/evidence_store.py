"""
Evidence Store Module.

Stores offboarding audit reports as JSON evidence files.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class EvidenceStore:
    """
    File-based storage for compliance evidence.

    Files are laid out as <storage_dir>/YYYY/MM/<user_id>/<evidence_id>.json.
    """

    def __init__(self, storage_dir: Union[str, Path] = "evidence"):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def store_evidence(self, data: Dict[str, Any], user_id: str, evidence_id: str) -> str:
        """
        Store evidence data as JSON.

        Args:
            data: JSON-serializable evidence payload
            user_id: User the evidence belongs to
            evidence_id: Identifier used as the file name

        Returns:
            Path of the stored evidence file
        """
        date_path = datetime.now(timezone.utc).strftime("%Y/%m")
        target_dir = self.storage_dir / date_path / user_id
        target_dir.mkdir(parents=True, exist_ok=True)

        target_path = target_dir / f"{evidence_id}.json"
        with open(target_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Stored evidence for {user_id} at {target_path}")
        return str(target_path)

    def retrieve_evidence(self, stored_path: str) -> Optional[Dict[str, Any]]:
        """
        Load evidence previously returned by store_evidence.

        Returns:
            The evidence data, or None if the file does not exist
        """
        path = Path(stored_path)
        if not path.exists():
            return None

        with open(path, encoding="utf-8") as f:
            return json.load(f)
