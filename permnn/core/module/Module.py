class Module:
    """
    Module is a base class for layers
    which keep a plan between forward() and backward() calls.

    Calling the module calls forward().
    """

    def forward(self, *args, **kwargs):
        """
        Define your operations here.
        """
        raise NotImplementedError()

    def backward(self, *args, **kwargs):
        """
        Propagate gradient of outputs to inputs.
        """
        raise NotImplementedError()

    def get_name(self):
        """
        Returns name of the Module.
        """
        return self.__class__.__name__

    ### INTERNAL METHODS start with _

    def __call__(self, *args, **kwargs):
        return self.forward(*args, **kwargs)

    def __str__(self): return self.get_name()
    def __repr__(self): return self.__str__()
