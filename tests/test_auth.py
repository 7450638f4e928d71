import pytest

from chamberbox.models.doctor import Doctor, SubscriptionTier
from chamberbox.models.staff import StaffMember
from chamberbox.models.subscription import SubscriptionUsage
from chamberbox.models.user import User

from .conftest import TEST_PASSWORD, login, register_doctor

# Test data
test_user_data = {
    "email": "test@example.com",
    "password": TEST_PASSWORD,
    "role": "doctor",
    "full_name": "Dr. Test User",
    "specialization": "Medicine",
}

test_login_data = {
    "email": "test@example.com",
    "password": TEST_PASSWORD
}

class TestAuthentication:

    def test_register_user(self, client):
        """Test doctor registration."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 200

        data = response.json()
        assert data["email"] == test_user_data["email"]
        assert data["role"] == test_user_data["role"]
        assert "password" not in data

    def test_register_creates_trial_profile(self, client, db_session):
        """Registering as a doctor creates the profile and usage row on the trial tier."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        user_id = response.json()["id"]

        doctor = db_session.query(Doctor).filter(Doctor.user_id == user_id).first()
        assert doctor is not None
        assert doctor.full_name == "Dr. Test User"
        assert doctor.subscription_tier == SubscriptionTier.TRIAL
        assert doctor.slug.startswith("dr-test-user-")

        usage = db_session.query(SubscriptionUsage).filter(
            SubscriptionUsage.doctor_id == doctor.id
        ).first()
        assert usage is not None
        assert usage.total_patients == 0

    def test_register_duplicate_email(self, client):
        """Test registration with duplicate email."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    def test_register_invalid_password(self, client):
        """Test registration with invalid password."""
        invalid_data = test_user_data.copy()
        invalid_data["password"] = "weak"

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 422

    def test_register_as_admin_rejected(self, client):
        """Administrators cannot be created through registration."""
        admin_data = test_user_data.copy()
        admin_data["role"] = "admin"

        response = client.post("/api/v1/auth/register", json=admin_data)
        assert response.status_code == 422

    def test_register_staff_without_invitation(self, client):
        """Staff can only register against a pending invitation."""
        staff_data = test_user_data.copy()
        staff_data.update({"email": "nurse@example.com", "role": "staff"})

        response = client.post("/api/v1/auth/register", json=staff_data)
        assert response.status_code == 400
        assert "invitation" in response.json()["detail"]

    def test_register_staff_links_invitation(self, client, db_session):
        """An invited staff member is linked to the invitation on sign up."""
        headers = register_doctor(client)
        invite = client.post("/api/v1/staff", headers=headers, json={
            "email": "nurse@example.com",
            "full_name": "Nasima Akter",
            "role": "receptionist",
        })
        assert invite.status_code == 201

        staff_data = test_user_data.copy()
        staff_data.update({"email": "nurse@example.com", "role": "staff", "full_name": "Nasima Akter"})
        response = client.post("/api/v1/auth/register", json=staff_data)
        assert response.status_code == 200

        member = db_session.query(StaffMember).filter(StaffMember.email == "nurse@example.com").first()
        assert member.user_id == response.json()["id"]
        assert member.accepted_at is not None

    def test_login_success(self, client):
        """Test successful login."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert "user" in data

    def test_login_invalid_credentials(self, client):
        """Test login with invalid credentials."""
        invalid_login = {
            "email": "nonexistent@example.com",
            "password": "wrongpassword"
        }

        response = client.post("/api/v1/auth/login", json=invalid_login)
        assert response.status_code == 401

    def test_login_wrong_password(self, client):
        """Test login with wrong password."""
        client.post("/api/v1/auth/register", json=test_user_data)

        wrong_login = test_login_data.copy()
        wrong_login["password"] = "wrongpassword"

        response = client.post("/api/v1/auth/login", json=wrong_login)
        assert response.status_code == 401

    def test_account_locked_after_failed_logins(self, client, db_session):
        """Five failed logins lock the account."""
        client.post("/api/v1/auth/register", json=test_user_data)
        wrong_login = {"email": test_user_data["email"], "password": "wrongpassword"}

        for _ in range(5):
            client.post("/api/v1/auth/login", json=wrong_login)

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 423

        user = db_session.query(User).filter(User.email == test_user_data["email"]).first()
        assert user.locked_until is not None

    def test_get_current_user(self, client):
        """Test getting current user info."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        token = login_response.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["email"] == test_user_data["email"]

    def test_get_current_user_invalid_token(self, client):
        """Test get current user with invalid token."""
        headers = {"Authorization": "Bearer invalid_token"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    def test_refresh_token(self, client):
        """Test token refresh."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        refresh_token = login_response.json()["refresh_token"]

        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh_token}
        )
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["refresh_token"] != refresh_token

    def test_refresh_token_rotated(self, client):
        """A refresh token cannot be used twice."""
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = client.post("/api/v1/auth/login", json=test_login_data).json()["refresh_token"]

        client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401

    def test_refresh_invalid_token(self, client):
        """Test refresh with invalid token."""
        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": "invalid_token"}
        )
        assert response.status_code == 401

    def test_logout(self, client):
        """Test user logout."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        refresh_token = login_response.json()["refresh_token"]

        response = client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": refresh_token}
        )
        assert response.status_code == 200

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401

    def test_change_password(self, client):
        """Test password change."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = login(client, test_user_data["email"])

        password_data = {
            "current_password": TEST_PASSWORD,
            "new_password": "NewPassword123"
        }

        response = client.post(
            "/api/v1/auth/change-password",
            json=password_data,
            headers=headers
        )
        assert response.status_code == 200

        login(client, test_user_data["email"], "NewPassword123")

    def test_change_password_wrong_current(self, client):
        """Test password change with wrong current password."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = login(client, test_user_data["email"])

        password_data = {
            "current_password": "WrongPassword",
            "new_password": "NewPassword123"
        }

        response = client.post(
            "/api/v1/auth/change-password",
            json=password_data,
            headers=headers
        )
        assert response.status_code == 400

    def test_password_reset_flow(self, client, db_session):
        """A reset token sets a new password once."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/forgot-password", json={"email": test_user_data["email"]})
        assert response.status_code == 200

        user = db_session.query(User).filter(User.email == test_user_data["email"]).first()
        reset_token = user.password_reset_token
        assert reset_token

        response = client.post("/api/v1/auth/reset-password", json={
            "token": reset_token,
            "new_password": "ResetPassword123"
        })
        assert response.status_code == 200

        login(client, test_user_data["email"], "ResetPassword123")

        response = client.post("/api/v1/auth/reset-password", json={
            "token": reset_token,
            "new_password": "AnotherPassword123"
        })
        assert response.status_code == 400

    def test_register_rate_limited(self, client, fake_redis):
        """Registration is throttled per client address."""
        fake_redis.store["rate_limit:/api/v1/auth/register:testclient"] = "10"

        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 429

    def test_verify_token(self, client):
        """Test token verification."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = login(client, test_user_data["email"])

        response = client.post("/api/v1/auth/verify-token", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] == True
        assert "user_id" in data

if __name__ == "__main__":
    pytest.main([__file__])
