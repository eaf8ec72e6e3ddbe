# loggregator_consumer/codec/logmessage.py
"""
Protobuf codec for the aggregator's ``logmessage.LogMessage`` frames.

The message class is built from a descriptor at import time, so no generated
``_pb2`` module is needed. Layout (proto2):

    message LogMessage {
        enum MessageType { OUT = 1; ERR = 2; }
        required bytes message = 1;
        required MessageType message_type = 2;
        required sint64 timestamp = 3;
        required string app_id = 4;
        optional string source_id = 6;
        repeated string drain_urls = 7;
        optional string source_name = 8;
    }
"""

from typing import Union

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf import message as protobuf_message
from pydantic import ValidationError

from loggregator_consumer.errors import DecodeError
from loggregator_consumer.schemas.record import LogRecord, MessageType

_FIELD = descriptor_pb2.FieldDescriptorProto

_LOG_MESSAGE_FIELDS = [
    # (name, number, type, label, type_name)
    ("message", 1, _FIELD.TYPE_BYTES, _FIELD.LABEL_REQUIRED, None),
    ("message_type", 2, _FIELD.TYPE_ENUM, _FIELD.LABEL_REQUIRED, ".logmessage.LogMessage.MessageType"),
    ("timestamp", 3, _FIELD.TYPE_SINT64, _FIELD.LABEL_REQUIRED, None),
    ("app_id", 4, _FIELD.TYPE_STRING, _FIELD.LABEL_REQUIRED, None),
    ("source_id", 6, _FIELD.TYPE_STRING, _FIELD.LABEL_OPTIONAL, None),
    ("drain_urls", 7, _FIELD.TYPE_STRING, _FIELD.LABEL_REPEATED, None),
    ("source_name", 8, _FIELD.TYPE_STRING, _FIELD.LABEL_OPTIONAL, None),
]


def _build_log_message_class():
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="loggregator_consumer/logmessage.proto",
        package="logmessage",
        syntax="proto2",
    )
    message_proto = file_proto.message_type.add(name="LogMessage")
    enum_proto = message_proto.enum_type.add(name="MessageType")
    for member in MessageType:
        enum_proto.value.add(name=member.name, number=member.value)

    for name, number, field_type, label, type_name in _LOG_MESSAGE_FIELDS:
        field = message_proto.field.add(name=name, number=number, type=field_type, label=label)
        if type_name:
            field.type_name = type_name

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("logmessage.LogMessage"))


LogMessageProto = _build_log_message_class()


def decode_log_message(frame: Union[bytes, str]) -> LogRecord:
    """
    Decode one WebSocket frame into a LogRecord.

    Raises DecodeError for text frames, empty frames, malformed protobuf,
    messages missing a required field and string fields holding invalid
    UTF-8. Never touches connection state.
    """
    if not isinstance(frame, (bytes, bytearray)):
        raise DecodeError("expected a binary frame, got text")
    if not frame:
        raise DecodeError("empty frame")

    message = LogMessageProto()
    try:
        message.ParseFromString(bytes(frame))
    except protobuf_message.Error as exc:
        raise DecodeError(f"malformed log message: {exc}") from exc

    if not message.IsInitialized():
        missing = ", ".join(message.FindInitializationErrors())
        raise DecodeError(f"log message missing required fields: {missing}")

    # string fields are not UTF-8 checked by proto2 parsing
    try:
        return LogRecord(
            payload=message.message,
            app_id=message.app_id,
            message_type=MessageType(message.message_type),
            source_name=message.source_name,
            source_id=message.source_id,
            timestamp=message.timestamp,
        )
    except (ValidationError, UnicodeDecodeError) as exc:
        raise DecodeError(f"invalid log message field: {exc}") from exc


def encode_log_message(record: LogRecord) -> bytes:
    message = LogMessageProto(
        message=record.payload,
        message_type=int(record.message_type),
        timestamp=record.timestamp,
        app_id=record.app_id,
        source_name=record.source_name,
    )
    if record.source_id:
        message.source_id = record.source_id
    return message.SerializeToString()
