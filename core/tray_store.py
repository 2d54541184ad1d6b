"""
Tray store: persistence for printer_trays rows.

Operators own sheets_loaded, sheets_capacity and the descriptive fields.
The tray synchronizer only ever writes the device-reported media facts
through ``update_media()``.
"""

from __future__ import annotations

from typing import List, Optional

from models.print_job import utc_now
from models.tray import PrinterTray
from .database import Database


class TrayStore:
    """Reads and writes PrinterTray rows."""

    def __init__(self, database: Database):
        self._db = database

    def get_by_name(self, tray_name: str) -> Optional[PrinterTray]:
        row = self._db.query_one(
            "SELECT * FROM printer_trays WHERE tray_name = ?", (tray_name,)
        )
        return PrinterTray.from_row(row) if row else None

    def list_trays(self) -> List[PrinterTray]:
        rows = self._db.query_all(
            "SELECT * FROM printer_trays ORDER BY tray_number IS NULL, tray_number, id"
        )
        return [PrinterTray.from_row(row) for row in rows]

    def insert(self, tray: PrinterTray) -> PrinterTray:
        self._db.execute(
            "INSERT INTO printer_trays (tray_name, tray_number, paper_size, paper_type, "
            "paper_weight_gsm, color, sheets_loaded, sheets_capacity, media_source_code, "
            "is_active, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                tray.tray_name, tray.tray_number, tray.paper_size, tray.paper_type,
                tray.paper_weight_gsm, tray.color, tray.sheets_loaded,
                tray.sheets_capacity, tray.media_source_code, int(tray.is_active),
                utc_now().isoformat(),
            ),
        )
        return self.get_by_name(tray.tray_name)

    def update_media(
        self,
        tray_name: str,
        paper_type: str,
        media_source_code: str,
        paper_weight_gsm: Optional[int] = None,
    ) -> bool:
        """
        Write device-reported media facts onto the tray named ``tray_name``.

        paper_weight_gsm is only written when a positive weight is given, so
        an unknown weight never overwrites a known one with NULL.
        sheets_loaded is never touched.

        Returns:
            True if a tray with that name exists and was updated
        """
        if paper_weight_gsm is not None and paper_weight_gsm > 0:
            cursor = self._db.execute(
                "UPDATE printer_trays SET paper_type = ?, media_source_code = ?, "
                "paper_weight_gsm = ?, updated_at = ? WHERE tray_name = ?",
                (paper_type, media_source_code, paper_weight_gsm,
                 utc_now().isoformat(), tray_name),
            )
        else:
            cursor = self._db.execute(
                "UPDATE printer_trays SET paper_type = ?, media_source_code = ?, "
                "updated_at = ? WHERE tray_name = ?",
                (paper_type, media_source_code, utc_now().isoformat(), tray_name),
            )
        return cursor.rowcount > 0
