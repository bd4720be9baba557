"""GPIB over a serial-attached Prologix-style controller.

This package provides:

- :class:`PrologixController`: the ``++`` directive protocol, bus addressing
  with a cached current address, and one lock for the whole bus
- :class:`GpibDevice`: a transport bound to one bus address
- :func:`open_controller`: open a serial port and configure a controller

Typical usage::

    from benchlink_prologix import open_controller
    from benchlink_scpi import open_session

    controller = open_controller("/dev/ttyUSB0")
    session = open_session("GPIB0::5::INSTR", gpib_controllers={0: controller})
    print(session.get_identity())
    controller.local(5)
    controller.close()
"""

from benchlink_prologix.controller import PrologixController, escape, open_controller
from benchlink_prologix.device import GpibDevice

__all__ = [
    "GpibDevice",
    "PrologixController",
    "escape",
    "open_controller",
]
