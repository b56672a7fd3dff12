import typing

from behave import then, use_step_matcher, when

from safe_signatures.abi import Deserializer, Serializer
from safe_signatures.address import Address

# Use regular expressions
use_step_matcher("re")


@when(r"I serialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_serialize(context: typing.Any, input_type: str):
    ser = Serializer()

    if input_type == "u8":
        ser.u8(context.input)
    elif input_type == "uint256":
        ser.uint256(context.input)
    elif input_type == "bytes32":
        ser.bytes32(context.input)
    elif input_type == "address":
        ser.struct(context.input)
    elif input_type == "bytes":
        ser.to_bytes(context.input)
    else:
        raise Exception("Unrecognized input type")

    context.output = ser.output()


@when(r"I deserialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_deserialize(context: typing.Any, input_type: str):
    des = Deserializer(context.input)
    context.output = None

    try:
        if input_type == "u8":
            context.output = des.u8()
        elif input_type == "uint256":
            context.output = des.uint256()
        elif input_type == "bytes32":
            context.output = des.bytes32()
        elif input_type == "address":
            context.output = des.struct(Address)
        elif input_type == "bytes":
            context.output = des.to_bytes()
    except Exception as e:
        context.output = e

    # Catch all if it fails to be parsed
    if context.output is None:
        raise Exception("Unrecognized input type")


@then(r"the deserialization should fail")
def then_fail_deserialization(context: typing.Any):
    assert isinstance(context.output, Exception)
