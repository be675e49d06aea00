from .audience import *
from .condition import *
from .entity import ModelEntity
from .event import *
from .experiment import *
from .feature_flag import *
