from .gaze import CheckRegion, CheckResult, EyeData, FixationEvent, Frame, Point

__all__ = ["CheckRegion", "CheckResult", "EyeData", "FixationEvent", "Frame", "Point"]
