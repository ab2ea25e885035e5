from . import plugins_pb2
from .topics import Topics, DEFAULT_TOPICS
from .wrappers import ProtobufConverter

__all__ = ["plugins_pb2", "Topics", "DEFAULT_TOPICS", "ProtobufConverter"]
