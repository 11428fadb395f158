"""Service layer helpers"""

from .address import InvalidAddressError, normalize_address
from .crowdfund import CrowdfundService
from .flow import InvalidStepInputError, StepFlow, StepOutcome
from .refresh import RefreshScheduler
