"""Infrastructure adapters shared by the SlotHub apps."""
