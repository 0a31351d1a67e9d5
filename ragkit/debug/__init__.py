from ragkit.debug.runtime import DebugRuntime, get_debug_runtime, register_debug, reset_debug_runtime

__all__ = ["DebugRuntime", "get_debug_runtime", "register_debug", "reset_debug_runtime"]
