from __future__ import annotations

from pydantic import BaseModel, conint, constr

Identity = constr(strip_whitespace=True, min_length=1, max_length=128)


class RegisterOrganizationInput(BaseModel):
    caller: Identity
    name: constr(strip_whitespace=True, min_length=1, max_length=256)
    token_reference: Identity

class AddStakeholderInput(BaseModel):
    caller: Identity
    stakeholder: Identity
    total_amount: conint(strict=True, gt=0)
    start_time: conint(strict=True, ge=0)
    duration: conint(strict=True, gt=0)

class WhitelistInput(BaseModel):
    caller: Identity
    stakeholder: Identity

class CallerInput(BaseModel):
    caller: Identity

class ClaimInput(BaseModel):
    caller: Identity
