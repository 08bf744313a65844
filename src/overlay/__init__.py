from .draw import blank_canvas, draw_detections

__all__ = ["blank_canvas", "draw_detections"]
