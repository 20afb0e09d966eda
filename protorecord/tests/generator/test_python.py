"""Tests for generated Python records and builders"""

import dataclasses

import pytest
from pytest import approx

from protorecord.generator import plan_message
from protorecord.generator.python import render_builder, render_record, runtime
from protorecord.generator.types import FieldDescriptor, FieldType, MessageDescriptor
from protorecord.proto import DecodeError, EncodeError, Message

PERSON = """
syntax = "proto3";
package example;

message Person {
  string name = 1;
  int32 age = 2;
}
"""

SCALARS = """
syntax = "proto3";

message Scalars {
  double d = 1;
  float f = 2;
  int64 i64 = 3;
  uint64 u64 = 4;
  int32 i32 = 5;
  fixed64 fx64 = 6;
  fixed32 fx32 = 7;
  bool flag = 8;
  string text = 9;
  bytes blob = 10;
  uint32 u32 = 11;
  Color color = 12;
  sfixed32 sfx32 = 13;
  sfixed64 sfx64 = 14;
  sint32 s32 = 15;
  sint64 s64 = 16;
}

enum Color {
  COLOR_UNSPECIFIED = 0;
  RED = 1;
  BLUE = 2;
}
"""

ADDRESS_BOOK = """
syntax = "proto3";
package book;

message Address {
  string city = 1;
  int32 zip = 2;
}

message Contact {
  string name = 1;
  Address home = 2;
  repeated Address addresses = 3;
  repeated string tags = 4;
  repeated int32 scores = 5;
  optional int32 priority = 6;
  Contact referrer = 7;
}
"""

SHADOW = """
syntax = "proto3";

message Shadow {
  int32 cls = 1;
  int32 self = 2;
  bool build = 3;
}
"""


def describe_person():
    def defaults_to_empty_values(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        person = Person()
        expect(person.name) == ""
        expect(person.age) == 0
        expect(Person.default_instance()) == person

    def encodes_the_expected_bytes(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        encoded = Person(name="Ada", age=30).to_bytes()
        expect(encoded) == b"\x0a\x03Ada\x10\x1e"

    def builds_with_chained_setters(gen_code, expect):
        classes = gen_code(PERSON)
        Person, PersonBuilder = classes["Person"], classes["PersonBuilder"]
        person = Person.new_builder().set_name("Ada").set_age(30).build()
        expect(person) == Person("Ada", 30)
        expect(isinstance(PersonBuilder(), PersonBuilder)) == True

    def is_immutable(gen_code):
        Person = gen_code(PERSON)["Person"]
        with pytest.raises(dataclasses.FrozenInstanceError):
            Person().name = "Bob"

    def compares_by_value(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        expect(Person("Ada", 30)) == Person("Ada", 30)
        expect(hash(Person("Ada", 30))) == hash(Person("Ada", 30))
        expect(Person("Ada", 30) != Person("Ada", 31)) == True

    def derives_with_updaters(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        ada = Person("Ada", 30)
        older = ada.with_age(31)
        expect(older) == Person("Ada", 31)
        expect(ada.age) == 30

    def round_trips_through_the_builder(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        ada = Person("Ada", 30)
        builder = ada.to_builder()
        expect(builder.name) == "Ada"
        expect(builder.set_age(31).build()) == Person("Ada", 31)
        expect(ada) == Person("Ada", 30)

    def derives_from_the_runtime_message(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        expect(issubclass(Person, Message)) == True

    def last_occurrence_wins(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        person = Person.parse_from(b"\x10\x01\x10\x02")
        expect(person.age) == 2

    def rejects_truncated_input(gen_code):
        Person = gen_code(PERSON)["Person"]
        with pytest.raises(DecodeError):
            Person.parse_from(b"\x0a\x05Ada")

    def rejects_out_of_range_values(gen_code):
        Person = gen_code(PERSON)["Person"]
        with pytest.raises(EncodeError):
            Person(age=2**31).to_bytes()

    def rejects_floats_too_large_for_single_precision(gen_code):
        Scalars = gen_code(SCALARS)["Scalars"]
        with pytest.raises(EncodeError):
            Scalars(f=1e40).to_bytes()


def describe_scalars():
    def round_trips_every_kind(gen_code, expect):
        Scalars = gen_code(SCALARS)["Scalars"]
        value = Scalars(
            d=-2.5,
            f=1.5,
            i64=-(2**40),
            u64=2**64 - 1,
            i32=-7,
            fx64=2**63,
            fx32=2**32 - 1,
            flag=True,
            text="héllo",
            blob=b"\x00\xff",
            u32=300,
            color=2,
            sfx32=-(2**31),
            sfx64=-1,
            s32=-64,
            s64=2**62,
        )
        encoded = value.to_bytes()
        expect(len(encoded)) == value.serialized_size()
        decoded = Scalars.parse_from(encoded)
        expect(decoded) == value
        expect(decoded.f) == approx(1.5)

    def elides_defaults(gen_code, expect):
        Scalars = gen_code(SCALARS)["Scalars"]
        expect(Scalars().to_bytes()) == b""
        expect(Scalars().serialized_size()) == 0

    def writes_only_the_changed_field(gen_code, expect):
        Scalars = gen_code(SCALARS)["Scalars"]
        expect(Scalars(flag=True).to_bytes()) == b"\x40\x01"
        expect(Scalars(s32=-1).to_bytes()) == b"\x78\x01"
        expect(Scalars(color=1).to_bytes()) == b"\x60\x01"

    def decodes_empty_input_to_defaults(gen_code, expect):
        Scalars = gen_code(SCALARS)["Scalars"]
        expect(Scalars.parse_from(b"")) == Scalars()


def describe_nested_and_repeated():
    def round_trips_nested_messages(gen_code, expect):
        classes = gen_code(ADDRESS_BOOK)
        Address, Contact = classes["Address"], classes["Contact"]
        contact = Contact(
            name="Ada",
            home=Address("London", 1),
            addresses=[Address("Paris", 2), Address()],
            tags=["a", "b"],
            scores=[1, -1, 300],
            referrer=Contact(name="Charles"),
        )
        encoded = contact.to_bytes()
        expect(len(encoded)) == contact.serialized_size()
        expect(Contact.parse_from(encoded)) == contact

    def sizes_repeated_fields_of_every_length(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        for tags in [(), ("x",), ("x", "yy", "")]:
            contact = Contact(tags=tags)
            expect(len(contact.to_bytes())) == contact.serialized_size()

    def copies_repeated_inputs(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        tags = ["a"]
        contact = Contact(tags=tags)
        tags.append("b")
        expect(contact.tags) == ("a",)

    def treats_empty_sequences_as_equal(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        expect(Contact(tags=[])) == Contact()
        expect(Contact.parse_from(Contact().to_bytes()).tags) == ()

    def writes_each_element_as_its_own_occurrence(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        encoded = Contact(tags=["a", "b", "c"]).to_bytes()
        expect(encoded) == b"\x22\x01a\x22\x01b\x22\x01c"

    def appends_in_order(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        contact = Contact.new_builder().add_tag("x").add_tag("y").add_tag("z").build()
        expect(contact.tags) == ("x", "y", "z")
        expect(contact.to_bytes()) == b"\x22\x01x\x22\x01y\x22\x01z"

    def appends_to_copied_values(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        original = Contact(tags=["a"])
        updated = original.to_builder().add_tag("b").build()
        expect(updated.tags) == ("a", "b")
        expect(original.tags) == ("a",)

    def builder_is_reusable(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        builder = Contact.new_builder().add_score(1)
        first = builder.build()
        second = builder.add_score(2).build()
        expect(first.scores) == (1,)
        expect(second.scores) == (1, 2)

    def accepts_packed_numbers(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        packed = b"\x2a\x03\x01\x02\x03" + b"\x28\x04"
        expect(Contact.parse_from(packed).scores) == (1, 2, 3, 4)

    def nested_default_is_absent(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        expect(Contact().home) == None

    def writes_empty_nested_messages(gen_code, expect):
        classes = gen_code(ADDRESS_BOOK)
        Address, Contact = classes["Address"], classes["Contact"]
        encoded = Contact(home=Address()).to_bytes()
        expect(encoded) == b"\x12\x00"
        expect(Contact.parse_from(encoded).home) == Address()


def describe_optional_presence():
    def writes_zero_when_present(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        expect(Contact(priority=0).to_bytes()) == b"\x30\x00"
        expect(Contact().to_bytes()) == b""

    def distinguishes_absent_from_zero(gen_code, expect):
        Contact = gen_code(ADDRESS_BOOK)["Contact"]
        expect(Contact.parse_from(b"").priority) == None
        expect(Contact.parse_from(b"\x30\x00").priority) == 0


def describe_reserved_names():
    def round_trips_fields_named_like_generated_code(gen_code, expect):
        Shadow = gen_code(SHADOW)["Shadow"]
        value = Shadow(cls_=5, self_=7, build_=True)
        expect(Shadow.parse_from(value.to_bytes())) == value
        expect(value.to_bytes()) == b"\x08\x05\x10\x07\x18\x01"

    def builds_fields_named_like_generated_code(gen_code, expect):
        Shadow = gen_code(SHADOW)["Shadow"]
        builder = Shadow.new_builder().set_cls(5).set_build(True)
        expect(builder.cls_) == 5
        expect(builder.build()) == Shadow(cls_=5, build_=True)


def describe_unknown_fields():
    def skips_every_wire_type(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        data = (
            b"\x18\x96\x01"  # 3: varint
            + b"\x0a\x03Ada"
            + b"\x21" + b"\x00" * 8  # 4: fixed64
            + b"\x2a\x02hi"  # 5: length-delimited
            + b"\x10\x1e"
            + b"\x35" + b"\x00" * 4  # 6: fixed32
        )
        expect(Person.parse_from(data)) == Person("Ada", 30)

    def skips_known_numbers_with_a_different_wire_type(gen_code, expect):
        Person = gen_code(PERSON)["Person"]
        data = b"\x15\x00\x00\x00\x00" + b"\x10\x1e"
        expect(Person.parse_from(data).age) == 30


def describe_rendering():
    def uses_the_runtime_import(expect):
        message = MessageDescriptor(
            name="Ping", fields=[FieldDescriptor(name="id", number=1, type=FieldType.UINT32)]
        )
        plan = plan_message(message, "net")
        code = render_record(plan, runtime_import="my_runtime")
        expect("from my_runtime import wire as _wire" in code) == True
        expect("case 8:  # field 1: id" in code) == True
        expect("from net import PingBuilder as _builder" in code) == True

    def renames_keyword_fields(expect):
        message = MessageDescriptor(
            name="Flow", fields=[FieldDescriptor(name="from", number=1, type=FieldType.STRING)]
        )
        plan = plan_message(message, "net")
        expect("from_: str = " in render_record(plan)) == True
        expect("def set_from(self, value: str) -> FlowBuilder:" in render_builder(plan)) == True

    def renames_fields_that_shadow_generated_names(expect):
        message = MessageDescriptor(
            name="Box",
            fields=[
                FieldDescriptor(name="self", number=1, type=FieldType.INT32),
                FieldDescriptor(name="to_bytes", number=2, type=FieldType.BYTES),
            ],
        )
        code = render_record(plan_message(message, "net"))
        expect("    self_: int = 0\n" in code) == True
        expect("    to_bytes_: bytes = " in code) == True

    def renders_empty_messages(expect):
        plan = plan_message(MessageDescriptor(name="Empty"), "net")
        code = render_record(plan)
        expect("class Empty(_Message):" in code) == True
        expect("        pass\n" in code) == True

    def ships_runtime_files(expect):
        files = runtime()
        expect(sorted(files)) == ["__init__.py", "serialization.py", "wire.py"]
        expect("class InputStream" in files["wire.py"]) == True
