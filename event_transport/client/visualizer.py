"""
MODULE OVERVIEW:
The Rich terminal console for a single channel.

WHAT IS HAPPENING HERE:
The channel's callbacks feed this object. It keeps the assembled reply text, a short feed of
the latest messages and the channel stats, and redraws a Live layout while `connect()` runs.
"""
import asyncio
from collections import deque
from datetime import datetime
from typing import Any

from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from event_transport.client.base_client import BaseTransport

MODE_INFO = {
    "nostream": "Single shot: one request, the whole reply arrives at the end.",
    "short": "Short polling: ask on a fixed interval, one event per request.",
    "long": "Long polling: each request waits server-side until an event or a timeout.",
    "sse": "Server-Sent Events: one held-open response, events pushed as text frames.",
    "ws": "WebSocket: JSON frames over a full-duplex connection.",
}


class Visualizer:
    def __init__(self, channel: BaseTransport):
        self.channel = channel
        self.status = "CONNECTING"
        self.reply = ""
        self.recent_messages: deque = deque(maxlen=10)
        self.final: dict[str, Any] | None = None

    def on_open(self) -> None:
        self.status = "ACTIVE"

    def on_error(self, error: Exception) -> None:
        self.status = f"ERROR: {error}"

    def on_message(self, message: dict[str, Any]) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        kind = str(message.get("type"))
        data = message.get("data")

        if kind == "token" and isinstance(data, dict):
            self.reply += str(data.get("t", ""))
        elif kind == "done":
            self.status = "DONE"
            self.final = data if isinstance(data, dict) else {}
            # Single-shot carries every event inside the done body.
            for event in message.get("events", []):
                if event.get("type") == "token":
                    self.reply += str(event.get("data", {}).get("t", ""))

        payload_str = str(data)
        if len(payload_str) > 40:
            payload_str = payload_str[:40] + "..."
        self.recent_messages.appendleft((ts, kind, payload_str))

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="info")
        )

        color = "green" if self.status in ("ACTIVE", "DONE") else "yellow" if self.status == "CONNECTING" else "red"
        layout["header"].update(Panel(
            f"[{color} bold]Mode: {self.channel.mode} | Status: {self.status}[/]", style=color
        ))

        table = Table(title="Messages", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Type", style="magenta")
        table.add_column("Data", style="green")
        for row in self.recent_messages:
            table.add_row(*row)

        layout["left"].split_column(
            Layout(Panel(self.reply or "...", title="Reply")),
            Layout(Panel(table, title="Feed")),
        )

        stats = self.channel.stats
        layout["stats"].update(Panel(
            f"Messages: {stats['messages_received']}\n"
            f"Requests: {stats['requests_sent']}\n"
            f"Empty/timeouts: {stats['empty_responses']}\n"
            f"Bytes: {stats['bytes_received']}",
            title="Channel Stats",
        ))
        layout["info"].update(Panel(MODE_INFO.get(self.channel.mode, "Custom mode"), title="Transport"))
        return layout

    async def run(self, initial_payload: dict[str, Any]) -> None:
        self.channel.on_open(self.on_open)
        self.channel.on_message(self.on_message)
        self.channel.on_error(self.on_error)

        task = asyncio.create_task(self.channel.connect(initial_payload))

        with Live(self.generate_layout(), refresh_per_second=8) as live:
            while not task.done():
                live.update(self.generate_layout())
                await asyncio.sleep(0.125)
            live.update(self.generate_layout())
