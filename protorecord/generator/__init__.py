"""protorecord code generator."""

from .driver import GeneratorOptions as GeneratorOptions
from .driver import generate as generate
from .fields import GenerationError as GenerationError
from .fields import UnsupportedFieldTypeError as UnsupportedFieldTypeError
from .fields import plan_field as plan_field
from .fields import plan_message as plan_message
from .parser import ValidationError as ValidationError
from .parser import load as load
from .parser import parse as parse
from .types import *
