"""
errors.py — Exception taxonomy for the store / submit / auth workflows.

Every stage raises one of these to its caller; the CLI is the only place
that turns them into a message and an exit code.
"""
from __future__ import annotations


class PclError(Exception):
    """Base class for all pcl errors."""


# === Build: toolchain, artifact resolution, flattening ===
class BuildError(PclError):
    """Anything that went wrong before the source was ready to submit."""


class ForgeNotInstalled(BuildError):
    def __init__(self):
        super().__init__("forge is not installed or not available in PATH")


class DirectoryNotFound(BuildError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Directory not found: {path}")


class NoSourceFilesFound(BuildError):
    def __init__(self, path=None):
        self.path = path
        super().__init__("No source files found in specified build paths.")


class CompilationError(BuildError):
    def __init__(self, output: str):
        self.output = output
        super().__init__(f"Compilation failed:\n{output}")


class ContractNotFound(BuildError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Contract {name} was not found in the build output")


class MalformedArtifact(BuildError):
    def __init__(self, reason: str, path=None):
        self.reason = reason
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"invalid forge output: {reason}{where}")


class FlattenError(BuildError):
    def __init__(self, message: str, attempts=None):
        self.attempts = list(attempts or [])
        super().__init__(message)


class InvalidConstructorArgs(PclError):
    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(
            f"Invalid Constructor Args Count: Constructor Signature expects: {expected}, "
            f"Constructor Args submitted: {got}; pass args by calling the command in the "
            f"following format: `pcl store <assertion_contract> <arg0> <arg1>`"
        )


class InvalidAssertionKey(PclError):
    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid assertion key {text!r}: {reason}")


# === DA submission transport ===
class DaClientError(PclError):
    """Failure talking to the assertion DA service."""


class Unauthorized(DaClientError):
    def __init__(self):
        self.status_code = 401
        super().__init__("Assertion submission failed! Unauthorized. Please run `pcl auth login`.")


class HttpError(DaClientError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP Error: {status_code}")


class InvalidUrl(DaClientError):
    def __init__(self, url: str, reason: str = ""):
        self.url = url
        super().__init__(f"Invalid DA server URL: {url}" + (f" ({reason})" if reason else ""))


class InvalidResponse(DaClientError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid server response: {reason}")


class RemoteError(DaClientError):
    def __init__(self, code: int, message: str):
        self.code = code
        self.remote_message = message
        super().__init__(f"Server error (code {code}): {message}")


class RequestFailed(DaClientError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Request to DA server failed: {reason}")


# === Authentication ===
class AuthError(PclError):
    """Device-code login failures."""


class AuthRequestFailed(AuthError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            f"Authentication request failed. Please check your connection and try again.\nError: {reason}"
        )


class AuthTimeout(AuthError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Authentication timed out after {attempts} attempts. "
            f"Please try again and approve the wallet connection promptly."
        )


class IncompleteAuthData(AuthError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Authentication failed: response is missing {field!r}")


class InvalidAddress(AuthError):
    def __init__(self, value):
        self.value = value
        super().__init__(
            "Invalid Ethereum address received. Please ensure you're connecting with a valid wallet."
        )


class InvalidTimestamp(AuthError):
    def __init__(self, value):
        self.value = value
        super().__init__("Invalid timestamp received from server. Please try again.")


# === State document ===
class ConfigError(PclError):
    """Reading or writing the state document failed."""


class ConfigReadError(ConfigError):
    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"Failed to read config file {path}: {reason}")


class ConfigParseError(ConfigError):
    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"Failed to parse config file {path}: {reason}")


class ConfigWriteError(ConfigError):
    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"Failed to write config file {path}: {reason}")


class ConfigPermissionError(ConfigWriteError):
    pass


class SettingsError(ConfigError):
    pass


# === Forwarding to the dApp ===
class DappError(PclError):
    """Failures forwarding stored assertions to a project."""


class NoAuthToken(DappError):
    def __init__(self):
        super().__init__("No auth token found, please run `pcl auth login` first")


class NoProjectsFound(DappError):
    def __init__(self):
        super().__init__(
            "No projects found for the authenticated user.\n"
            "Please run `pcl project create` or create one in the dApp."
        )


class ProjectNotFound(DappError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Project {name!r} does not exist for the authenticated user")


class NoStoredAssertions(DappError):
    def __init__(self):
        super().__init__(
            "No stored assertions found.\nPlease run `pcl store` first to store some assertions."
        )


class CouldNotFindStoredAssertion(DappError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Could not find stored assertion {key} in the config.\nPlease run `pcl store` first."
        )


class SubmissionFailed(DappError):
    def __init__(self, body: str, status_code=None):
        self.body = body
        self.status_code = status_code
        super().__init__(f"Submission failed: {body}")


class ApiConnectionError(DappError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to connect to the dApp API: {reason}")
