"""
Core application engine for resolving and downloading a video.

The `DownloadOrchestrator` coordinates the pipeline, delegating manifest
parsing to `manifest` and stream choice to `selector`.
"""
