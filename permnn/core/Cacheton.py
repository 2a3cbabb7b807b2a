
class Cacheton:
    """
    Cached classes by hashable arguments.

    Used to keep permutation plans alive between calls,
    so they are computed only once per (rank, order).

    Objects got by get_slot() are kept one per slot,
    so stride plans of a layer fed by varying shapes do not pile up.
    """
    cachetons = {}
    slots = {}

    @staticmethod
    def get(cls, *args, **kwargs):
        """
        Get class cached by args/kwargs
        If it does not exist, creates new with *args,**kwargs
        All cached data will be freed with pn.cleanup()

        If construction raises an error, nothing is cached.
        """
        cls_multitons = Cacheton.cachetons.get(cls, None)
        if cls_multitons is None:
            cls_multitons = Cacheton.cachetons[cls] = {}

        key = (args, tuple(kwargs.items()) )

        data = cls_multitons.get(key, None)
        if data is None:
            data = cls_multitons[key] = cls(*args, **kwargs)

        return data

    @staticmethod
    def get_slot(cls, slot, *args, **kwargs):
        """
        Same as get(), but only one object is kept per hashable slot.
        Object of a slot is replaced when args/kwargs differ from the cached ones.
        """
        cls_slots = Cacheton.slots.get(cls, None)
        if cls_slots is None:
            cls_slots = Cacheton.slots[cls] = {}

        key = (args, tuple(kwargs.items()) )

        cached = cls_slots.get(slot, None)
        if cached is None or cached[0] != key:
            cached = cls_slots[slot] = (key, cls(*args, **kwargs) )

        return cached[1]

    @staticmethod
    def get_count(cls):
        """
        returns number of cached objects of class cls
        """
        return len(Cacheton.cachetons.get(cls, ())) + len(Cacheton.slots.get(cls, ()))

    @staticmethod
    def _cleanup():
        """
        Free all cached objects
        """
        Cacheton.cachetons = {}
        Cacheton.slots = {}
