#!/usr/bin/env python3
"""System tray widget showing HyperX Cloud Flight headset state."""

import sys
import logging
import subprocess
from typing import Optional

from PyQt5.QtWidgets import QApplication, QSystemTrayIcon, QMenu, QAction
from PyQt5.QtGui import QIcon, QPainter, QColor, QFont, QPixmap, QPainterPath, QPen
from PyQt5.QtCore import Qt, pyqtSignal, QObject, QRectF

from hyperx_cloud_flight.config import Config
from hyperx_cloud_flight.monitor import HeadsetMonitor
from hyperx_cloud_flight.protocol import Event, EventType
from hyperx_cloud_flight.session import CloudFlightSession

log = logging.getLogger(__name__)


class _HeadsetSignal(QObject):
    """Thread-safe bridge: read loop thread -> Qt main thread."""

    event = pyqtSignal(object)
    connection = pyqtSignal(bool)
    error = pyqtSignal(str)


class HeadsetState:
    """What the tray knows about the headset, folded from events."""

    def __init__(self):
        self.connected = False
        self.powered = False
        self.muted = False
        self.charging = False
        self.battery: Optional[int] = None

    def apply(self, event: Event) -> None:
        kind = event.kind
        if kind is EventType.POWER_ON:
            self.powered = True
        elif kind is EventType.POWER_OFF:
            self.powered = False
            self.charging = False
        elif kind is EventType.MUTED:
            self.muted = True
        elif kind is EventType.UNMUTED:
            self.muted = False
        elif kind is EventType.BATTERY_CHARGING:
            self.powered = True
            self.charging = True
        elif kind is EventType.BATTERY_LEVEL:
            self.powered = True
            self.charging = False
            self.battery = event.level

    def summary(self) -> str:
        if not self.connected:
            return "Not connected"
        if not self.powered:
            return "Headset off"
        if self.charging:
            return "Charging"
        if self.battery is None:
            return "Battery: ---%"
        return f"Battery: {self.battery}%"


class HeadsetTrayIcon(QSystemTrayIcon):
    """System tray icon that displays headset battery and mute state."""

    def __init__(self):
        super().__init__()

        self._config = Config()
        self.state = HeadsetState()
        self.error: Optional[str] = None
        self._notified_thresholds = set()

        # --- Context menu ---
        self._menu = QMenu()

        self._status_action = QAction("Not connected", self._menu)
        self._status_action.setEnabled(False)
        self._menu.addAction(self._status_action)

        self._mute_action = QAction("Microphone: ---", self._menu)
        self._mute_action.setEnabled(False)
        self._menu.addAction(self._mute_action)

        self._menu.addSeparator()

        self._rescan_action = QAction("Scan Now", self._menu)
        self._rescan_action.triggered.connect(self._rescan)
        self._menu.addAction(self._rescan_action)

        self._quit_action = QAction("Quit", self._menu)
        self._quit_action.triggered.connect(QApplication.quit)
        self._menu.addAction(self._quit_action)

        self.setContextMenu(self._menu)

        # --- Headset monitor ---
        self._signal = _HeadsetSignal()
        self._signal.event.connect(self._on_event)
        self._signal.connection.connect(self._on_connection)
        self._signal.error.connect(self._on_error)

        session = CloudFlightSession(self._signal.event.emit, **self._config.session_options())
        self._monitor = HeadsetMonitor(
            session,
            rescan_delay=self._config.device["rescan_delay_seconds"],
            on_connection=self._signal.connection.emit,
            on_error=lambda exc: self._signal.error.emit(str(exc)),
        )
        QApplication.instance().aboutToQuit.connect(self._monitor.stop)

        self._refresh()
        self.show()
        self._monitor.start()

    # ---- Icon rendering -------------------------------------------------

    @staticmethod
    def _create_icon(percent, charging=False, muted=False, inactive=False):
        """Draw a headset silhouette with a battery bar between the ear cups."""
        size = 64
        pixmap = QPixmap(size, size)
        pixmap.fill(Qt.transparent)

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.Antialiasing)

        if inactive:
            body_color = QColor(100, 100, 100)
            fill_color = QColor(80, 80, 80)
        elif charging:
            body_color = QColor(60, 60, 60)
            fill_color = QColor(80, 180, 255)
        else:
            body_color = QColor(60, 60, 60)
            if percent is None:
                fill_color = QColor(120, 120, 120)
            elif percent <= 10:
                fill_color = QColor(255, 60, 60)
            elif percent <= 25:
                fill_color = QColor(255, 180, 60)
            elif percent <= 50:
                fill_color = QColor(255, 235, 60)
            else:
                fill_color = QColor(80, 200, 80)

        # Headband
        band = QPainterPath()
        band.moveTo(10, 38)
        band.cubicTo(10, 4, 54, 4, 54, 38)
        painter.setPen(QPen(body_color, 6, Qt.SolidLine, Qt.RoundCap))
        painter.setBrush(Qt.NoBrush)
        painter.drawPath(band)

        # Ear cups
        painter.setPen(QPen(QColor(120, 120, 120), 1.5))
        painter.setBrush(body_color)
        painter.drawRoundedRect(QRectF(4, 34, 14, 24), 5, 5)
        painter.drawRoundedRect(QRectF(46, 34, 14, 24), 5, 5)

        # Battery bar
        painter.setPen(QPen(QColor(120, 120, 120), 1.5))
        painter.setBrush(QColor(40, 40, 40))
        painter.drawRect(QRectF(22, 40, 20, 18))
        if not inactive and (charging or percent):
            level = 100 if charging else percent
            fill_height = int((level / 100.0) * 16)
            painter.setPen(Qt.NoPen)
            painter.setBrush(fill_color)
            painter.drawRect(QRectF(23, 57 - fill_height, 18, fill_height))

        if inactive or (percent is None and not charging):
            painter.setPen(QColor(200, 200, 200))
            painter.setFont(QFont("Sans", 12, QFont.Bold))
            painter.drawText(QRectF(22, 40, 20, 18), Qt.AlignCenter, "?")

        # Mute slash
        if muted and not inactive:
            painter.setPen(QPen(QColor(255, 60, 60), 5, Qt.SolidLine, Qt.RoundCap))
            painter.drawLine(8, 8, 56, 56)

        painter.end()
        return QIcon(pixmap)

    # ---- State update ---------------------------------------------------

    def _on_event(self, event: Event) -> None:
        prev_battery = self.state.battery
        was_charging = self.state.charging
        was_muted = self.state.muted

        self.state.apply(event)
        self.error = None
        self._check_notifications(event, prev_battery, was_charging, was_muted)
        self._refresh()

    def _on_connection(self, connected: bool) -> None:
        self.state.connected = connected
        if not connected:
            self.state.powered = False
            self.state.charging = False
        self._refresh()

    def _on_error(self, message: str) -> None:
        self.error = message
        self._refresh()

    def _rescan(self) -> None:
        self._monitor.rescan()

    def _refresh(self) -> None:
        state = self.state
        inactive = not state.connected or not state.powered or self.error is not None
        self.setIcon(self._create_icon(state.battery, state.charging, state.muted, inactive))

        if self.error:
            status = f"Error: {self.error}"
        else:
            status = state.summary()
        mic = "---" if inactive else ("muted" if state.muted else "on")

        self.setToolTip(f"HyperX Cloud Flight\n{status}\nMicrophone: {mic}")
        self._status_action.setText(status)
        self._mute_action.setText(f"Microphone: {mic}")

    # ---- Notifications ----------------------------------------------------

    def _check_notifications(self, event: Event, prev_battery: Optional[int],
                             was_charging: bool, was_muted: bool) -> None:
        """Check if we should show a desktop notification for this event."""
        notif_config = self._config.notifications
        if not notif_config["enabled"]:
            return

        kind = event.kind
        if notif_config["mute_notify"] and kind in (EventType.MUTED, EventType.UNMUTED):
            if self.state.muted != was_muted:
                self._send_notification("Microphone Muted" if self.state.muted else "Microphone On", "")

        if notif_config["charging_notify"] and kind is EventType.BATTERY_CHARGING and not was_charging:
            self._send_notification("Charging Started", "Headset is charging")
            self._notified_thresholds.clear()

        if kind is not EventType.BATTERY_LEVEL:
            return

        battery = event.level
        if prev_battery is not None:
            for threshold in sorted(notif_config["thresholds"], reverse=True):
                if battery <= threshold < prev_battery and threshold not in self._notified_thresholds:
                    urgency = "critical" if threshold <= 10 else "normal"
                    self._send_notification(
                        f"Low Battery: {battery}%",
                        f"Headset battery has dropped to {battery}%",
                        urgency=urgency,
                    )
                    self._notified_thresholds.add(threshold)

            # Reset thresholds if battery goes back up (e.g., after charging)
            if battery > prev_battery:
                self._notified_thresholds = {t for t in self._notified_thresholds if t < battery}

    def _send_notification(self, title: str, message: str, urgency: str = "normal"):
        """Send a desktop notification."""
        try:
            subprocess.run([
                "notify-send",
                "-a", "HyperX Cloud Flight",
                "-u", urgency,
                "-i", "audio-headset",
                title,
                message
            ], check=False, capture_output=True)
        except FileNotFoundError:
            log.debug("notify-send not available")


def main():
    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)
    app.setApplicationName("HyperX Cloud Flight")

    config = Config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not QSystemTrayIcon.isSystemTrayAvailable():
        print("Error: System tray is not available on this desktop environment.")
        sys.exit(1)

    _tray = HeadsetTrayIcon()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
