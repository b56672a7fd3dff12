from behave import *

from safe_signatures.address import Address

# Use regular expressions
use_step_matcher("re")


@when("I parse the address strictly")
def when_parse_address_strict(context):
    try:
        context.output = Address.from_str(context.input)
    except Exception as e:
        context.output = e


@when("I parse the address")
def when_parse_address(context):
    try:
        context.output = Address.from_str_relaxed(context.input)
    except Exception as e:
        context.output = e


@when("I convert the address to a string")
def when_address_to_string(context):
    context.output = str(context.input)


@then("I should fail to parse the address")
def then_fail_address(context):
    assert isinstance(context.output, Exception)
