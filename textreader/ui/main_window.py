"""Main application window: scan button, result text and region overlay."""

import tkinter as tk
from tkinter import ttk
import logging
from typing import List

from ..core.entities import Region, ScanReport
from ..services.capture_pipeline import CapturePipeline
from ..utils.geometry import region_to_canvas_xyxy

logger = logging.getLogger(__name__)


class ScanWindow:
    """Single-window front end for a CapturePipeline."""

    OVERLAY_WIDTH = 480
    OVERLAY_HEIGHT = 360

    def __init__(self, root: tk.Tk, pipeline: CapturePipeline):
        self.root = root
        self.pipeline = pipeline
        self.pipeline.on_outcome = self.show_report

        self.root.title("Text Reader")
        self._build_ui()

    def _build_ui(self):
        container = ttk.Frame(self.root, padding=12)
        container.grid(row=0, column=0, sticky="nsew")
        self.root.grid_rowconfigure(0, weight=1)
        self.root.grid_columnconfigure(0, weight=1)

        self.overlay = tk.Canvas(
            container, width=self.OVERLAY_WIDTH, height=self.OVERLAY_HEIGHT,
            background="#202020", highlightthickness=0
        )
        self.overlay.grid(row=0, column=0, sticky="nsew")

        self.inference_var = tk.StringVar(value="")
        ttk.Label(container, textvariable=self.inference_var).grid(row=1, column=0, sticky="e")

        self.result_var = tk.StringVar(value="")
        ttk.Label(
            container, textvariable=self.result_var, wraplength=self.OVERLAY_WIDTH,
            font=("TkDefaultFont", 14)
        ).grid(row=2, column=0, sticky="we", pady=(8, 8))

        self.scan_button = ttk.Button(container, text="Scan", command=self.on_scan)
        self.scan_button.grid(row=3, column=0, sticky="we", ipady=12)
        self.root.bind("<space>", lambda event: self.on_scan())
        self.root.bind("<Return>", lambda event: self.on_scan())

    def on_scan(self):
        # A failing capture reports synchronously through show_report,
        # so the busy state must be shown before triggering.
        previous_text = self.result_var.get()
        self.scan_button.state(["disabled"])
        self.result_var.set("Scanning...")
        if not self.pipeline.trigger_capture():
            logger.debug("Scan already running")
            self.result_var.set(previous_text)
            self.scan_button.state(["!disabled"])

    def show_report(self, report: ScanReport):
        """Outcome callback; runs on the Tk thread."""
        if report.inference_label:
            self.inference_var.set(report.inference_label)
        self.result_var.set(report.display_text)
        self.draw_regions(report.regions)
        self.scan_button.state(["!disabled"])

    def draw_regions(self, regions: List[Region]):
        self.overlay.delete("region")
        for region in regions:
            x1, y1, x2, y2 = region_to_canvas_xyxy(region, self.OVERLAY_WIDTH, self.OVERLAY_HEIGHT)
            self.overlay.create_rectangle(x1, y1, x2, y2, outline="#00c853", width=2, tags="region")
            if region.label:
                self.overlay.create_text(
                    x1 + 4, y1 + 4, anchor="nw", fill="#00c853",
                    text=f"{region.label} {region.confidence:.2f}", tags="region"
                )
