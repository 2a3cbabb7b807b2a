from .test import test_all
