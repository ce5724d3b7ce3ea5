"""Protocol Buffers wire-format primitives: varints, keys, scalar codecs, messages, groups and maps."""

__version__ = "0.8.0"
__all__ = ["composite", "errors", "scalars", "wire"]