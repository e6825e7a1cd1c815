"""Fingerprint profile, stealth init script and request interception.

The profile is fixed (Windows desktop Chrome 131) so that the user agent,
client hints, navigator properties and WebGL strings all tell the same
story. Every patch in the init script is wrapped in its own try/catch: a
page that freezes one property must not stop the remaining patches.
"""

import logging

from playwright.async_api import BrowserContext, Page

from pagescope.config import settings

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--window-size=1920,1080",
    "--lang=en-US,en",
]

VIEWPORT = {"width": 1920, "height": 1080}

WEBGL_VENDOR = "Intel Inc."
WEBGL_RENDERER = "Intel Iris OpenGL Engine"
HW_CONCURRENCY = 8
DEVICE_MEMORY = 8

EXTRA_HTTP_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9,tr;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    "Accept-Encoding": "gzip, deflate, br, zstd",
    "Cache-Control": "max-age=0",
    "Sec-Ch-Ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "DNT": "1",
}

# Only audio/video is dropped; images, fonts and stylesheets still load so
# the page renders (and fingerprints) like a normal visit.
BLOCKED_RESOURCE_TYPES = frozenset({"media"})


def context_options() -> dict:
    """Keyword arguments for ``browser.new_context``."""
    return dict(
        user_agent=settings.BROWSER_USER_AGENT,
        viewport=VIEWPORT,
        screen=VIEWPORT,
        device_scale_factor=1,
        locale=settings.BROWSER_LOCALE,
        timezone_id=settings.BROWSER_TIMEZONE,
        java_script_enabled=True,
        has_touch=False,
        is_mobile=False,
        extra_http_headers=EXTRA_HTTP_HEADERS,
    )


async def _route_handler(route, request):
    if request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
        return
    await route.continue_()


async def setup_route_blocking(page: Page) -> None:
    await page.route("**/*", _route_handler)


def build_stealth_script(
    webgl_vendor: str = WEBGL_VENDOR,
    webgl_renderer: str = WEBGL_RENDERER,
    hw_concurrency: int = HW_CONCURRENCY,
    device_mem: int = DEVICE_MEMORY,
) -> str:
    return f"""
// ============================================================
// LEVEL 1: navigator.webdriver
// ============================================================

try {{
    Object.defineProperty(navigator, 'webdriver', {{ get: () => undefined }});
    delete Object.getPrototypeOf(navigator).webdriver;
}} catch (e) {{}}

// ============================================================
// LEVEL 2: Plugins (headless has 0 plugins = detection)
// ============================================================

try {{
    const makePlugin = (name, desc, filename) => {{
        const plugin = Object.create(Plugin.prototype);
        Object.defineProperties(plugin, {{
            name: {{ value: name, enumerable: true }},
            description: {{ value: desc, enumerable: true }},
            filename: {{ value: filename, enumerable: true }},
            length: {{ value: 1, enumerable: true }},
        }});
        return plugin;
    }};
    const plugins = [
        makePlugin('PDF Viewer', 'Portable Document Format', 'internal-pdf-viewer'),
        makePlugin('Chrome PDF Viewer', 'Portable Document Format', 'internal-pdf-viewer'),
        makePlugin('Chromium PDF Viewer', 'Portable Document Format', 'internal-pdf-viewer'),
        makePlugin('Microsoft Edge PDF Viewer', 'Portable Document Format', 'internal-pdf-viewer'),
        makePlugin('WebKit built-in PDF', 'Portable Document Format', 'internal-pdf-viewer'),
    ];
    Object.defineProperty(navigator, 'plugins', {{
        get: () => {{
            const arr = Object.create(PluginArray.prototype);
            plugins.forEach((p, i) => {{ arr[i] = p; }});
            Object.defineProperty(arr, 'length', {{ value: plugins.length }});
            arr.item = (i) => plugins[i];
            arr.namedItem = (name) => plugins.find(p => p.name === name);
            arr.refresh = () => {{}};
            return arr;
        }},
    }});
}} catch (e) {{}}

// ============================================================
// LEVEL 3: Navigator properties consistent with the UA
// ============================================================

try {{
    Object.defineProperty(navigator, 'languages', {{ get: () => ['en-US', 'en', 'tr'] }});
    Object.defineProperty(navigator, 'platform', {{ get: () => 'Win32' }});
    Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {hw_concurrency} }});
    Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {device_mem} }});
    Object.defineProperty(navigator, 'maxTouchPoints', {{ get: () => 0 }});
}} catch (e) {{}}

try {{
    Object.defineProperty(navigator, 'connection', {{
        get: () => ({{ effectiveType: '4g', rtt: 50, downlink: 10, saveData: false }}),
    }});
}} catch (e) {{}}

// ============================================================
// LEVEL 4: Chrome runtime (missing in headless = instant detection)
// ============================================================

try {{
    window.chrome = {{
        runtime: {{
            connect: function() {{}},
            sendMessage: function() {{}},
            id: undefined,
        }},
        loadTimes: function() {{
            return {{
                requestTime: Date.now() / 1000 - Math.random() * 3,
                startLoadTime: Date.now() / 1000 - Math.random() * 2,
                commitLoadTime: Date.now() / 1000 - Math.random(),
                finishDocumentLoadTime: Date.now() / 1000,
                finishLoadTime: Date.now() / 1000,
                firstPaintTime: Date.now() / 1000,
                firstPaintAfterLoadTime: 0,
                navigationType: 'Other',
                wasFetchedViaSpdy: false,
                wasNpnNegotiated: true,
                npnNegotiatedProtocol: 'h2',
                connectionInfo: 'h2',
            }};
        }},
        csi: function() {{
            return {{ onloadT: Date.now(), pageT: Math.random() * 3000 + 1000, startE: Date.now(), tran: 15 }};
        }},
        app: {{
            isInstalled: false,
            InstallState: {{ DISABLED: 'disabled', INSTALLED: 'installed', NOT_INSTALLED: 'not_installed' }},
            RunningState: {{ CANNOT_RUN: 'cannot_run', READY_TO_RUN: 'ready_to_run', RUNNING: 'running' }},
        }},
    }};
}} catch (e) {{}}

// ============================================================
// LEVEL 5: Permissions API
// ============================================================

try {{
    const origQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
    window.navigator.permissions.query = (params) =>
        params && params.name === 'notifications'
            ? Promise.resolve({{ state: Notification.permission }})
            : origQuery(params);
}} catch (e) {{}}

// ============================================================
// LEVEL 6: WebGL vendor / renderer
// ============================================================

try {{
    const glVendor = '{webgl_vendor}';
    const glRenderer = '{webgl_renderer}';
    const patchWebGL = (proto) => {{
        if (!proto) return;
        const orig = proto.getParameter;
        proto.getParameter = function(param) {{
            if (param === 37445) return glVendor;
            if (param === 37446) return glRenderer;
            return orig.call(this, param);
        }};
    }};
    patchWebGL(WebGLRenderingContext.prototype);
    if (window.WebGL2RenderingContext) patchWebGL(WebGL2RenderingContext.prototype);
}} catch (e) {{}}

// ============================================================
// LEVEL 7: Canvas read-back noise (single low bit)
// ============================================================

try {{
    const origToDataURL = HTMLCanvasElement.prototype.toDataURL;
    HTMLCanvasElement.prototype.toDataURL = function() {{
        try {{
            const ctx = this.getContext('2d');
            if (ctx && this.width && this.height) {{
                const imageData = ctx.getImageData(0, 0, this.width, this.height);
                for (let i = 0; i < imageData.data.length; i += 4) {{
                    imageData.data[i] ^= 1;
                }}
                ctx.putImageData(imageData, 0, 0);
            }}
        }} catch (e) {{}}
        return origToDataURL.apply(this, arguments);
    }};
}} catch (e) {{}}

// ============================================================
// LEVEL 8: iframe contentWindow
// ============================================================

try {{
    Object.defineProperty(HTMLIFrameElement.prototype, 'contentWindow', {{
        get: function() {{ return window; }},
    }});
}} catch (e) {{}}
"""


async def apply_stealth(context: BrowserContext) -> None:
    await context.add_init_script(build_stealth_script())
