import typing

from behave import given, then, use_step_matcher

from safe_signatures.address import Address
from safe_signatures.hash_domain import keccak256

# Use regular expressions
use_step_matcher("re")


@given(r"(?P<input_type>[a-zA-Z0-9]+) (?P<input_value>\S+)")
def given_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_value(input_type, input_value)


@then(r"the result should be (?P<expected_type>[a-zA-Z0-9]+) (?P<expected_value>\S+)")
def then_result(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_value(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_value) + " but got " + str(context.output)
    )


@then(r"the call should fail with (?P<error>[a-zA-Z]+)")
def then_fail_with(context: typing.Any, error: str):
    assert isinstance(context.output, Exception), (
        "Expected " + error + " but got " + str(context.output)
    )
    assert type(context.output).__name__ == error, (
        "Expected " + error + " but got " + repr(context.output)
    )


def parse_value(input_type: str, input_value: str) -> typing.Any:
    if input_type == "bool":
        return parse_bool(input_value)
    elif input_type == "u8" or input_type == "uint256":
        return int(input_value)
    elif input_type == "address":
        return Address.from_str_relaxed(input_value)
    elif input_type == "bytes":
        return parse_hex(input_value)
    elif input_type == "keccak":
        return keccak256(parse_hex(input_value))
    elif input_type == "string":
        return parse_string(input_value)
    raise Exception("Unrecognized input type")


def parse_hex(input_value: str):
    return bytes.fromhex(input_value.removeprefix("0x"))


def parse_bool(input_value: str):
    return input_value == "true"


def parse_string(input_value: str):
    return input_value.removeprefix('"').removesuffix('"')
