"""Media tool adapter package — ffmpeg/ffprobe invocation.

All external media processing goes through FFmpegTool; nothing else in the
package spawns processes.
"""

from captionburn.media.ffmpeg import FFmpegTool, escape_filter_path

__all__ = ["FFmpegTool", "escape_filter_path"]
