#!/usr/bin/env python3
"""
Smoke-test client for the inkshot server

A command-line client that exercises the API end to end against a running
server: health, ad hoc capture, screenshot listing and download, and a full
profile lifecycle (create, capture, check run history, delete).

Usage: python -m inkshot.smoke_client --server http://localhost:5001
"""

import argparse
import hashlib
import io
import sys
from typing import Optional

import requests
from PIL import Image


class Colors:
    """ANSI color codes for terminal output"""
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


class InkshotSmokeClient:
    """Smoke-test client for the inkshot server API"""

    def __init__(self, server_url: str, target_url: str, output_format: str = 'bmp3',
                 width: int = 800, height: int = 480, session: Optional[requests.Session] = None):
        self.server_url = server_url.rstrip('/')
        self.target_url = target_url
        self.output_format = output_format
        self.width = width
        self.height = height
        self.session = session or requests.Session()

    def _print_status(self, message: str, status: str = "INFO"):
        """Print formatted status message"""
        if status == "OK":
            color = Colors.GREEN
            symbol = "✓"
        elif status == "ERROR":
            color = Colors.RED
            symbol = "✗"
        elif status == "WARN":
            color = Colors.YELLOW
            symbol = "⚠"
        else:
            color = Colors.BLUE
            symbol = "ℹ"

        print(f"{color}{Colors.BOLD}[{symbol} {status}]{Colors.RESET} {message}")

    def _print_section(self, title: str):
        """Print section header"""
        print(f"\n{Colors.CYAN}{Colors.BOLD}{'='*60}{Colors.RESET}")
        print(f"{Colors.CYAN}{Colors.BOLD}{title}{Colors.RESET}")
        print(f"{Colors.CYAN}{Colors.BOLD}{'='*60}{Colors.RESET}\n")

    def test_health(self) -> bool:
        """Test GET /health endpoint"""
        self._print_section("TEST: Health")

        try:
            response = self.session.get(f"{self.server_url}/health", timeout=10)
            if response.status_code != 200:
                self._print_status(f"Failed with status {response.status_code}: {response.text}", "ERROR")
                return False

            data = response.json()
            self._print_status(f"Version {data.get('version')}, {data.get('profiles')} profiles", "INFO")
            if not data.get('browser_ready'):
                self._print_status("Server is up but the browser is not ready", "WARN")
                return False
            self._print_status("Server healthy", "OK")
            return True

        except Exception as e:
            self._print_status(f"Exception: {e}", "ERROR")
            return False

    def test_capture(self) -> Optional[str]:
        """Test POST /api/screenshot endpoint; returns the new filename"""
        self._print_section("TEST: Ad Hoc Capture")

        try:
            payload = {
                'url': self.target_url,
                'width': self.width,
                'height': self.height,
                'format': self.output_format,
            }
            self._print_status(f"Capturing {self.target_url} as {self.output_format}", "INFO")

            response = self.session.post(f"{self.server_url}/api/screenshot", json=payload, timeout=60)
            data = response.json()

            if response.status_code == 200 and data.get('success'):
                self._print_status(f"Saved {data['filename']} ({data['size']} bytes)", "OK")
                return data['filename']

            self._print_status(f"Failed with status {response.status_code}: {data.get('error', data)}", "ERROR")
            return None

        except Exception as e:
            self._print_status(f"Exception: {e}", "ERROR")
            return None

    def test_list_screenshots(self, expected: Optional[str] = None) -> bool:
        """Test GET /api/screenshots endpoint"""
        self._print_section("TEST: List Screenshots")

        try:
            response = self.session.get(f"{self.server_url}/api/screenshots", params={'limit': 20}, timeout=10)
            if response.status_code != 200:
                self._print_status(f"Failed with status {response.status_code}: {response.text}", "ERROR")
                return False

            filenames = [s['filename'] for s in response.json()['screenshots']]
            self._print_status(f"{len(filenames)} screenshots listed", "INFO")

            if expected and expected not in filenames:
                self._print_status(f"{expected} missing from listing", "ERROR")
                return False

            self._print_status("Listing OK", "OK")
            return True

        except Exception as e:
            self._print_status(f"Exception: {e}", "ERROR")
            return False

    def test_get_screenshot(self, filename: str) -> bool:
        """Test GET /api/screenshot/{filename} and check the image decodes at the requested size"""
        self._print_section("TEST: Download Screenshot")

        try:
            response = self.session.get(f"{self.server_url}/api/screenshot/{filename}", timeout=10)
            if response.status_code != 200:
                self._print_status(f"Failed with status {response.status_code}: {response.text}", "ERROR")
                return False

            img = Image.open(io.BytesIO(response.content))
            image_hash = hashlib.sha1(response.content).hexdigest()[:8]
            self._print_status(f"Image {img.size}, mode {img.mode}, hash {image_hash}", "INFO")

            if img.size != (self.width, self.height):
                self._print_status(f"Expected {self.width}x{self.height}, got {img.size}", "ERROR")
                return False

            self._print_status("Image OK", "OK")
            return True

        except Exception as e:
            self._print_status(f"Exception: {e}", "ERROR")
            return False

    def test_profile_lifecycle(self) -> bool:
        """Create a profile, capture it, check its run history and delete it"""
        self._print_section("TEST: Profile Lifecycle")

        profile_id = None
        try:
            response = self.session.post(f"{self.server_url}/api/profiles", json={
                'name': 'smoke test',
                'url': self.target_url,
                'width': self.width,
                'height': self.height,
                'outputFormat': self.output_format,
            }, timeout=10)
            if response.status_code != 201:
                self._print_status(f"Create failed with status {response.status_code}: {response.text}", "ERROR")
                return False
            profile_id = response.json()['id']
            self._print_status(f"Created profile {profile_id}", "OK")

            response = self.session.post(f"{self.server_url}/api/profiles/{profile_id}/capture", timeout=60)
            if response.status_code != 200:
                self._print_status(f"Capture failed with status {response.status_code}: {response.text}", "ERROR")
                return False
            self._print_status(f"Captured {response.json()['filename']}", "OK")

            profile = self.session.get(f"{self.server_url}/api/profiles/{profile_id}", timeout=10).json()
            if profile.get('failureCount') != 0 or not profile.get('lastSuccess'):
                self._print_status(f"Unexpected run history: {profile}", "ERROR")
                return False
            self._print_status(f"Run history OK (last success {profile['lastSuccess']})", "OK")
            return True

        except Exception as e:
            self._print_status(f"Exception: {e}", "ERROR")
            return False

        finally:
            if profile_id:
                self.session.delete(f"{self.server_url}/api/profiles/{profile_id}", timeout=10)
                self._print_status(f"Deleted profile {profile_id}", "INFO")

    def run_full_test(self) -> bool:
        """Run complete test workflow"""
        print(f"\n{Colors.BOLD}{'='*60}")
        print("inkshot Smoke Client")
        print(f"{'='*60}{Colors.RESET}")
        print(f"Server: {self.server_url}")
        print(f"Target: {self.target_url}")
        print(f"Format: {self.output_format} ({self.width}x{self.height})")
        print(f"{'='*60}\n")

        results = {
            'health': False,
            'capture': False,
            'list_screenshots': False,
            'get_screenshot': False,
            'profile_lifecycle': False,
        }

        results['health'] = self.test_health()

        filename = self.test_capture()
        results['capture'] = filename is not None

        results['list_screenshots'] = self.test_list_screenshots(expected=filename)

        if filename:
            results['get_screenshot'] = self.test_get_screenshot(filename)

        results['profile_lifecycle'] = self.test_profile_lifecycle()

        # Summary
        self._print_section("TEST SUMMARY")

        passed = sum(1 for v in results.values() if v)
        total = len(results)

        for test_name, passed_test in results.items():
            status = "OK" if passed_test else "ERROR"
            self._print_status(f"{test_name}: {'PASSED' if passed_test else 'FAILED'}", status)

        print()
        if passed == total:
            self._print_status(f"All {total} tests PASSED", "OK")
        else:
            self._print_status(f"{passed}/{total} tests passed, {total - passed} failed", "ERROR")

        return passed == total


def main():
    parser = argparse.ArgumentParser(
        description='Smoke-test client for the inkshot server API',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Capture example.com through a local server
  python -m inkshot.smoke_client --target https://example.com

  # JPEG output against a remote server
  python -m inkshot.smoke_client --server http://192.168.1.100:5001 --format jpeg
        """
    )

    parser.add_argument(
        '--server',
        default='http://localhost:5001',
        help='Server URL (default: http://localhost:5001)'
    )

    parser.add_argument(
        '--target',
        default='https://example.com',
        help='Page to capture (default: https://example.com)'
    )

    parser.add_argument(
        '--format',
        default='bmp3',
        choices=['png', 'jpeg', 'bmp3', 'bmp'],
        help='Output format (default: bmp3)'
    )

    parser.add_argument('--width', type=int, default=800, help='Viewport width (default: 800)')
    parser.add_argument('--height', type=int, default=480, help='Viewport height (default: 480)')

    args = parser.parse_args()

    try:
        client = InkshotSmokeClient(
            server_url=args.server,
            target_url=args.target,
            output_format=args.format,
            width=args.width,
            height=args.height
        )
        success = client.run_full_test()
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Test interrupted by user{Colors.RESET}")
        sys.exit(130)
    except Exception as e:
        print(f"\n{Colors.RED}{Colors.BOLD}Fatal error: {e}{Colors.RESET}")
        sys.exit(1)


if __name__ == '__main__':
    main()
