from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from shibr.core.config import settings
from shibr.models import OTPPurpose, VerificationOTP
from shibr.services import otp
from shibr.services.messaging import StubOTPProvider

PHONE = "0512345678"
INTERNATIONAL = "966512345678"


@pytest.fixture
def provider():
    return StubOTPProvider()


async def _records(db):
    result = await db.execute(select(VerificationOTP).where(VerificationOTP.identifier == INTERNATIONAL))
    return list(result.scalars().all())


def test_phone_format():
    assert otp.is_valid_local_phone("0512345678")
    assert not otp.is_valid_local_phone("512345678")
    assert not otp.is_valid_local_phone("0612345678")
    assert not otp.is_valid_local_phone("05123456789")
    assert not otp.is_valid_local_phone("")


def test_normalize_phone():
    assert otp.normalize_phone("0512345678") == INTERNATIONAL
    assert otp.normalize_phone("+966 51 234 5678") == INTERNATIONAL
    assert otp.normalize_phone("512345678") == INTERNATIONAL


def test_generated_codes_are_six_digits():
    for _ in range(50):
        code = otp.generate_otp()
        assert len(code) == 6 and code.isdigit()


async def test_send_and_verify(db, provider):
    result = await otp.send_code(db, provider, PHONE, name="Reem")
    assert result.success

    records = await _records(db)
    assert len(records) == 1
    code = provider.last_code(INTERNATIONAL)
    assert records[0].code_hash != code
    assert not await otp.is_verified(db, PHONE)

    result = await otp.verify_code(db, PHONE, code)
    assert result.success
    assert await otp.is_verified(db, PHONE)
    assert not await otp.is_verified(db, PHONE, OTPPurpose.SIGNUP)


async def test_wrong_code_counts_attempts_then_locks(db, provider):
    await otp.send_code(db, provider, PHONE)
    code = provider.last_code(INTERNATIONAL)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(4):
        result = await otp.verify_code(db, PHONE, wrong)
        assert result.error == "Invalid verification code"
    assert (await _records(db))[0].attempts == 4

    result = await otp.verify_code(db, PHONE, wrong)
    assert result.error == "Too many failed attempts. Please request a new code"
    records = await _records(db)
    assert len(records) == 1
    assert records[0].attempts == 5

    result = await otp.verify_code(db, PHONE, code)
    assert result.error == "Too many failed attempts. Please request a new code"
    assert not await otp.is_verified(db, PHONE)


async def test_expired_code_stays_expired(db, provider):
    await otp.send_code(db, provider, PHONE)
    record = (await _records(db))[0]
    record.expires_at = datetime.utcnow() - timedelta(seconds=1)
    await db.flush()

    result = await otp.verify_code(db, PHONE, provider.last_code(INTERNATIONAL))
    assert result.error == "Verification code has expired"
    assert len(await _records(db)) == 1

    result = await otp.verify_code(db, PHONE, provider.last_code(INTERNATIONAL))
    assert result.error == "Verification code has expired"


async def test_resend_retires_the_earlier_code(db, provider, monkeypatch):
    monkeypatch.setattr(settings, "OTP_RESEND_COOLDOWN_SECONDS", 0)
    assert (await otp.send_code(db, provider, PHONE)).success
    assert (await otp.send_code(db, provider, PHONE)).success
    first, second = [entry["code"] for entry in provider.outbox]

    if first != second:
        result = await otp.verify_code(db, PHONE, first)
        assert result.error == "Invalid verification code"

    older = min(await _records(db), key=lambda record: record.id)
    assert older.expires_at <= datetime.utcnow()


async def test_superseded_code_stays_dead_after_newer_one_is_exhausted(db, provider, monkeypatch):
    monkeypatch.setattr(settings, "OTP_RESEND_COOLDOWN_SECONDS", 0)
    await otp.send_code(db, provider, PHONE)
    await otp.send_code(db, provider, PHONE)
    first, second = [entry["code"] for entry in provider.outbox]
    wrong = next(c for c in ("000000", "111111", "222222") if c not in (first, second))

    for _ in range(settings.OTP_MAX_ATTEMPTS):
        await otp.verify_code(db, PHONE, wrong)

    result = await otp.verify_code(db, PHONE, first)
    assert not result.success
    assert not await otp.is_verified(db, PHONE)


async def test_hourly_limit_counts_failed_codes(db, provider, monkeypatch):
    monkeypatch.setattr(settings, "OTP_RESEND_COOLDOWN_SECONDS", 0)
    sent = 0
    for _ in range(8):
        if (await otp.send_code(db, provider, PHONE)).success:
            sent += 1
        code = provider.last_code(INTERNATIONAL)
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(settings.OTP_MAX_ATTEMPTS):
            await otp.verify_code(db, PHONE, wrong)

    assert sent == settings.OTP_MAX_REQUESTS_PER_HOUR
    assert len(provider.outbox) == settings.OTP_MAX_REQUESTS_PER_HOUR
    result = await otp.send_code(db, provider, PHONE)
    assert result.error == "Too many verification attempts. Please try again later."


async def test_malformed_code_is_rejected_without_lookup(db, provider):
    await otp.send_code(db, provider, PHONE)
    result = await otp.verify_code(db, PHONE, "12ab")
    assert not result.success
    assert (await _records(db))[0].attempts == 0


async def test_resend_cooldown(db, provider):
    assert (await otp.send_code(db, provider, PHONE)).success
    result = await otp.send_code(db, provider, PHONE)
    assert result.error == "Please wait before requesting a new code"
    assert len(provider.outbox) == 1


async def test_hourly_limit(db, provider):
    now = datetime.utcnow()
    for minutes in (50, 40, 30, 20, 10):
        db.add(VerificationOTP(
            purpose=OTPPurpose.CHECKOUT,
            identifier=INTERNATIONAL,
            code_hash="x" * 64,
            created_at=now - timedelta(minutes=minutes),
            expires_at=now - timedelta(minutes=minutes) + timedelta(minutes=10),
        ))
    await db.flush()

    result = await otp.send_code(db, provider, PHONE)
    assert not result.success
    assert "Too many" in result.error
    assert provider.outbox == []


async def test_old_records_are_purged_and_stop_counting(db, provider):
    long_ago = datetime.utcnow() - timedelta(hours=2)
    for _ in range(5):
        db.add(VerificationOTP(
            purpose=OTPPurpose.CHECKOUT,
            identifier=INTERNATIONAL,
            code_hash="x" * 64,
            created_at=long_ago,
            expires_at=long_ago + timedelta(minutes=10),
        ))
    await db.flush()

    assert (await otp.send_code(db, provider, PHONE)).success
    assert len(await _records(db)) == 1


async def test_clear_codes(db, provider):
    await otp.send_code(db, provider, PHONE)
    await otp.verify_code(db, PHONE, provider.last_code(INTERNATIONAL))
    await otp.clear_codes(db, PHONE)
    assert not await otp.is_verified(db, PHONE)
