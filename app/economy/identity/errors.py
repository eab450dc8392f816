class IdentityError(Exception):
    pass


class IdentityMissingError(IdentityError):
    pass


class IdentityResolutionError(IdentityError):
    pass
