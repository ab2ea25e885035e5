# -*- coding: utf-8 -*-
# Generated by the protocol buffer compiler.  DO NOT EDIT!
# source: plugins.proto
"""Generated protocol buffer code."""
from google.protobuf.internal import builder as _builder
from google.protobuf import descriptor as _descriptor
from google.protobuf import descriptor_pool as _descriptor_pool
from google.protobuf import symbol_database as _symbol_database
# @@protoc_insertion_point(imports)

_sym_db = _symbol_database.Default()




DESCRIPTOR = _descriptor_pool.Default().AddSerializedFile(b'\n\rplugins.proto\x12\x04\x63ore\"\x07\n\x05\x45mpty\"A\n\x06Plugin\x12\x0c\n\x04name\x18\x01 \x01(\t\x12)\n\rplugin_status\x18\x02 \x01(\x0e\x32\x12.core.PluginStatus\"(\n\x07Plugins\x12\x1d\n\x07plugins\x18\x01 \x03(\x0b\x32\x0c.core.Plugin\"A\n\x14InstallPluginRequest\x12\x1c\n\x06plugin\x18\x01 \x01(\x0b\x32\x0c.core.Plugin\x12\x0b\n\x03\x63md\x18\x02 \x01(\t\"A\n\x0bNetResponse\x12!\n\x08response\x18\x01 \x01(\x0e\x32\x0f.core.Responses\x12\x0f\n\x07\x64\x65tails\x18\x02 \x01(\t\"@\n\x10NewPluginRequest\x12\x0c\n\x04name\x18\x01 \x01(\t\x12\x0b\n\x03url\x18\x02 \x01(\t\x12\x11\n\tdirectory\x18\x03 \x01(\t\"#\n\x11NewPluginResponse\x12\x0e\n\x06status\x18\x01 \x01(\x08*#\n\x0cPluginStatus\x12\x06\n\x02OK\x10\x00\x12\x0b\n\x07UNKNOWN\x10\x01*\x1f\n\tResponses\x12\x07\n\x03\x41\x43K\x10\x00\x12\t\n\x05\x45RROR\x10\x01\x62\x06proto3')

_builder.BuildMessageAndEnumDescriptors(DESCRIPTOR, globals())
_builder.BuildTopDescriptorsAndMessages(DESCRIPTOR, 'plugins_pb2', globals())
if _descriptor._USE_C_DESCRIPTORS == False:

  DESCRIPTOR._options = None
  _PLUGINSTATUS._serialized_start=378
  _PLUGINSTATUS._serialized_end=413
  _RESPONSES._serialized_start=415
  _RESPONSES._serialized_end=446
  _EMPTY._serialized_start=23
  _EMPTY._serialized_end=30
  _PLUGIN._serialized_start=32
  _PLUGIN._serialized_end=97
  _PLUGINS._serialized_start=99
  _PLUGINS._serialized_end=139
  _INSTALLPLUGINREQUEST._serialized_start=141
  _INSTALLPLUGINREQUEST._serialized_end=206
  _NETRESPONSE._serialized_start=208
  _NETRESPONSE._serialized_end=273
  _NEWPLUGINREQUEST._serialized_start=275
  _NEWPLUGINREQUEST._serialized_end=339
  _NEWPLUGINRESPONSE._serialized_start=341
  _NEWPLUGINRESPONSE._serialized_end=376
# @@protoc_insertion_point(module_scope)
