"""Fast TCP SYN port scanner for IPv4 hosts, with port parsing, interface selection and raw packet building."""

__version__ = "0.1.0"