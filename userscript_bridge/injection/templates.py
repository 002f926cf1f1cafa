"""
주입 페이로드 JavaScript 조각 모듈

페이로드를 구성하는 JavaScript 코드를 한곳에서 관리합니다.
모든 조각은 string.Template 형식이며 ``$이름`` 자리표시자만 `$`를 사용합니다.

구성:
- PAYLOAD_WRAPPER: 재진입 가드, base64 디코더, 페이지 주입 헬퍼를 포함한 외곽 IIFE
- GM_API_SHIM: 호환 API(GM_*)와 브리지 요청 헬퍼 (페이지 컨텍스트)
- CHROME_UI: 타이틀바와 스크립트 설정 패널 (페이지 컨텍스트)
- PRESENCE_HOOK: 서드파티 이벤트 객체를 제한 시간 동안 기다리는 프레즌스 훅
- SCRIPT_WRAPPER: 개별 스크립트를 load 이후 try/catch로 실행하는 래퍼
- BRIDGE_LISTENER: 호스트 셸로 요청을 전달하는 신뢰 측 리스너와 외부 링크 가로채기
"""

from string import Template
from typing import Final

# ============================================================
# 외곽 래퍼
# ============================================================
PAYLOAD_WRAPPER: Final[Template] = Template("""(function() {
  if (window !== window.top) return;
  if (window.__userscriptBridgeInjected) return;
  window.__userscriptBridgeInjected = true;

  var LABEL = $label;
  console.log(LABEL + ' initializing userscripts...');

  function decodeBase64(str) {
    return decodeURIComponent(atob(str).split('').map(function(c) {
      return '%' + ('00' + c.charCodeAt(0).toString(16)).slice(-2);
    }).join(''));
  }

  function injectIntoPage(code, name) {
    var script = document.createElement('script');
    script.textContent = code;
    script.setAttribute('data-userscript-bridge', name || 'userscript');
    document.documentElement.appendChild(script);
    script.remove();
  }

  function waitForDocumentElement(callback) {
    if (document.documentElement) {
      callback();
      return;
    }
    var interval = setInterval(function() {
      if (document.documentElement) {
        clearInterval(interval);
        callback();
      }
    }, 1);
  }

  waitForDocumentElement(function() {
$units
    console.log(LABEL + ' injection queued');
  });

$bridge_listener
})();
""")

# ============================================================
# 호환 API + 브리지 요청 헬퍼
# ============================================================
GM_API_SHIM: Final[Template] = Template("""(function() {
  var LABEL = $label;
  var sequence = 0;

  function newCorrelationId() {
    sequence += 1;
    return 'req_' + Date.now().toString(36) + '_' + sequence + '_' + Math.random().toString(36).slice(2, 10);
  }

  function bridgeRequest(operation, args) {
    return new Promise(function(resolve, reject) {
      var correlationId = newCorrelationId();
      function onMessage(event) {
        var data = event.data;
        if (event.source !== window || !data || data.kind !== 'invoke-response') return;
        if (data.correlationId !== correlationId) return;
        window.removeEventListener('message', onMessage);
        if (data.error !== undefined && data.error !== null) {
          reject(new Error(data.error));
        } else {
          resolve(data.result);
        }
      }
      window.addEventListener('message', onMessage);
      window.postMessage({
        kind: 'invoke',
        correlationId: correlationId,
        operation: operation,
        args: args || {}
      }, '*');
    });
  }

  function windowControl(action) {
    window.postMessage({ kind: 'window-control', action: action }, '*');
  }

  window.__userscriptBridge = { request: bridgeRequest, windowControl: windowControl };

  window.unsafeWindow = window;
  window.GM_info = {
    script: { name: $app_name, version: '1.0' },
    scriptHandler: $app_name,
    version: '1.0'
  };
  window.GM_getValue = function(key, defaultValue) {
    try {
      var value = localStorage.getItem('gm_' + key);
      return value !== null ? JSON.parse(value) : defaultValue;
    } catch (e) {
      console.warn('[GM_getValue]', e);
      return defaultValue;
    }
  };
  window.GM_setValue = function(key, value) {
    try {
      localStorage.setItem('gm_' + key, JSON.stringify(value));
    } catch (e) {
      console.warn('[GM_setValue]', e);
    }
  };
  window.GM_deleteValue = function(key) {
    try {
      localStorage.removeItem('gm_' + key);
    } catch (e) {
      console.warn('[GM_deleteValue]', e);
    }
  };
  window.GM_listValues = function() {
    var keys = [];
    try {
      for (var i = 0; i < localStorage.length; i++) {
        var key = localStorage.key(i);
        if (key && key.indexOf('gm_') === 0) keys.push(key.substring(3));
      }
    } catch (e) {
      console.warn('[GM_listValues]', e);
    }
    return keys;
  };
  window.GM_addStyle = function(css) {
    var style = document.createElement('style');
    style.textContent = css;
    (document.head || document.documentElement).appendChild(style);
    return style;
  };
  window.GM_xmlhttpRequest = function(details) {
    var aborted = false;
    bridgeRequest('gm_xhr', {
      request: {
        url: details.url,
        method: details.method || 'GET',
        headers: details.headers || null,
        body: details.data === undefined ? null : details.data
      }
    }).then(function(response) {
      if (aborted || !details.onload) return;
      details.onload({
        finalUrl: details.url,
        readyState: 4,
        responseText: response.bodyText,
        response: response.bodyText,
        status: response.statusCode,
        statusText: response.statusText,
        responseHeaders: response.headers
      });
    }, function(error) {
      if (aborted) return;
      console.error('[GM_xmlhttpRequest]', error.message);
      if (details.onerror) details.onerror({ error: error.message, status: 0, finalUrl: details.url });
    });
    return { abort: function() { aborted = true; } };
  };
  window.GM_openInTab = function(url) {
    bridgeRequest('open_external_url', { url: url }).catch(function(error) {
      console.error('[GM_openInTab]', error.message);
    });
  };

  console.log(LABEL + ' compatibility API loaded');
})();
""")

# ============================================================
# 타이틀바 + 설정 패널
# ============================================================
CHROME_UI: Final[Template] = Template("""(function() {
  if (document.getElementById('usb-titlebar')) return;
  var bridge = window.__userscriptBridge;
  if (!bridge) return;

  var style = document.createElement('style');
  style.textContent = [
    '#usb-titlebar { position: fixed; top: 0; left: 0; right: 0; height: 32px; z-index: 999999;',
    '  display: flex; align-items: center; justify-content: space-between; padding: 0 8px;',
    '  background: #1a1a2e; color: #e0e0e0; font: 13px sans-serif; user-select: none; -webkit-app-region: drag; }',
    '#usb-titlebar button { -webkit-app-region: no-drag; background: none; border: 0; color: inherit;',
    '  width: 36px; height: 28px; cursor: pointer; }',
    '#usb-titlebar button:hover { background: rgba(255, 255, 255, 0.1); }',
    '#usb-panel { position: fixed; top: 36px; right: 8px; width: 380px; max-height: 70vh; overflow: auto;',
    '  z-index: 999999; padding: 12px; background: #1a1a2e; color: #e0e0e0; font: 13px sans-serif;',
    '  border: 1px solid #2a2a4a; border-radius: 6px; }',
    '#usb-panel .usb-row { display: flex; align-items: center; gap: 6px; padding: 4px 0; }',
    '#usb-panel .usb-name { flex: 1; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }',
    '#usb-panel .usb-error { color: #ff6b6b; font-size: 11px; }',
    '#usb-panel input[type=text] { flex: 1; }'
  ].join('\\n');
  (document.head || document.documentElement).appendChild(style);

  function button(label, title, onClick) {
    var el = document.createElement('button');
    el.textContent = label;
    el.title = title;
    el.addEventListener('click', onClick);
    return el;
  }

  var titlebar = document.createElement('div');
  titlebar.id = 'usb-titlebar';
  var title = document.createElement('div');
  title.textContent = $app_name;
  var controls = document.createElement('div');
  controls.appendChild(button('\\u2699', 'Scripts', function() { togglePanel(); }));
  controls.appendChild(button('\\u2013', 'Minimize', function() { bridge.windowControl('minimize'); }));
  controls.appendChild(button('\\u25a1', 'Maximize', function() { bridge.windowControl('maximize'); }));
  controls.appendChild(button('\\u2715', 'Close', function() { bridge.windowControl('close'); }));
  titlebar.appendChild(title);
  titlebar.appendChild(controls);

  var panel = document.createElement('div');
  panel.id = 'usb-panel';
  panel.style.display = 'none';
  var list = document.createElement('div');
  var status = document.createElement('div');
  var addRow = document.createElement('div');
  addRow.className = 'usb-row';
  var urlInput = document.createElement('input');
  urlInput.type = 'text';
  urlInput.placeholder = 'Script URL (https://...)';
  addRow.appendChild(urlInput);
  addRow.appendChild(button('Add', 'Add script', function() {
    var url = urlInput.value.trim();
    if (!url) return;
    run('add_script_from_url', { url: url }, 'Added').then(function() { urlInput.value = ''; });
  }));
  var applyButton = button('Apply & Reload', 'Rebuild scripts and reload the page', function() {
    run('reload_scripts', {}, 'Reloading...');
  });
  applyButton.disabled = true;
  panel.appendChild(list);
  panel.appendChild(addRow);
  panel.appendChild(applyButton);
  panel.appendChild(status);

  function setStatus(text, isError) {
    status.textContent = text || '';
    status.className = isError ? 'usb-error' : '';
  }

  function run(operation, args, doneText) {
    setStatus('...');
    return bridge.request(operation, args).then(function(result) {
      setStatus(doneText);
      if (operation !== 'reload_scripts') {
        applyButton.disabled = false;
        render();
      }
      return result;
    }, function(error) {
      setStatus(error.message, true);
      throw error;
    }).catch(function() {});
  }

  function renderScript(script) {
    var row = document.createElement('div');
    row.className = 'usb-row';
    var checkbox = document.createElement('input');
    checkbox.type = 'checkbox';
    checkbox.checked = !!script.enabled;
    checkbox.addEventListener('change', function() {
      run('toggle_script', { id: script.id, enabled: checkbox.checked }, 'Saved');
    });
    var name = document.createElement('span');
    name.className = 'usb-name';
    name.textContent = script.name + (script.version ? ' v' + script.version : '');
    name.title = script.description || script.url || '';
    row.appendChild(checkbox);
    row.appendChild(name);
    row.appendChild(button('\\u25b2', 'Move up', function() { run('move_script_up', { id: script.id }, 'Saved'); }));
    row.appendChild(button('\\u25bc', 'Move down', function() { run('move_script_down', { id: script.id }, 'Saved'); }));
    if (script.url) {
      row.appendChild(button('\\u21bb', 'Refresh', function() { run('refresh_script', { id: script.id }, 'Refreshed'); }));
    }
    row.appendChild(button('\\u2715', 'Delete', function() { run('delete_script', { id: script.id }, 'Deleted'); }));
    list.appendChild(row);
    if (script.last_fetch_error) {
      var error = document.createElement('div');
      error.className = 'usb-error';
      error.textContent = script.last_fetch_error;
      list.appendChild(error);
    }
  }

  function render() {
    bridge.request('get_scripts', {}).then(function(scripts) {
      list.textContent = '';
      (scripts || []).forEach(renderScript);
    }, function(error) {
      setStatus(error.message, true);
    });
  }

  function togglePanel() {
    var opening = panel.style.display === 'none';
    panel.style.display = opening ? 'block' : 'none';
    if (opening) render();
  }

  function mount() {
    document.body.appendChild(titlebar);
    document.body.appendChild(panel);
  }

  if (document.body) {
    mount();
  } else {
    document.addEventListener('DOMContentLoaded', mount);
  }
})();
""")

# ============================================================
# 프레즌스 훅
# ============================================================
PRESENCE_HOOK: Final[Template] = Template("""(function() {
  if (window.__userscriptPresenceHooked) return;
  window.__userscriptPresenceHooked = true;

  var GLOBAL_NAME = $presence_global;
  var EVENTS = ['game_start', 'round_start', 'round_end', 'game_end'];
  var attempts = 0;

  function report(eventName, detail) {
    var bridge = window.__userscriptBridge;
    if (!bridge) return;
    var payload = null;
    try {
      payload = detail === undefined ? null : JSON.parse(JSON.stringify(detail));
    } catch (e) {
      payload = null;
    }
    bridge.request('report_presence', { event: eventName, detail: payload }).catch(function() {});
  }

  function hook() {
    var framework = window[GLOBAL_NAME];
    if (!framework || !framework.events || typeof framework.events.addEventListener !== 'function') {
      return false;
    }
    EVENTS.forEach(function(eventName) {
      framework.events.addEventListener(eventName, function(event) {
        report(eventName, event && event.detail);
      });
    });
    return true;
  }

  var timer = setInterval(function() {
    attempts += 1;
    try {
      if (hook()) {
        clearInterval(timer);
        console.log('[presence] hooked ' + GLOBAL_NAME);
        return;
      }
    } catch (e) {
      console.warn('[presence] hook failed', e);
    }
    if (attempts >= $max_attempts) {
      clearInterval(timer);
      console.log('[presence] ' + GLOBAL_NAME + ' not available, giving up');
    }
  }, $interval_ms);
})();
""")

# ============================================================
# 개별 스크립트 래퍼
# ============================================================
SCRIPT_WRAPPER: Final[Template] = Template("""(function() {
  var SCRIPT_NAME = $name;
  var runScript = function() {
    try {
$code
    } catch (e) {
      console.error($label + ' error in script ' + SCRIPT_NAME + ':', e);
    }
  };
  if (document.readyState === 'complete') {
    runScript();
  } else {
    window.addEventListener('load', runScript);
  }
})();
""")

# ============================================================
# 신뢰 측 브리지 리스너
# ============================================================
BRIDGE_LISTENER: Final[Template] = Template("""  var HOST_GLOBAL = $host_global;
  var TARGET_HOST = $target_host;

  function resolveHost() {
    var host = window[HOST_GLOBAL];
    return host && typeof host.invoke === 'function' ? host : null;
  }

  function reply(correlationId, result, error) {
    var message = { kind: 'invoke-response', correlationId: correlationId };
    if (error !== null) {
      message.error = error;
    } else {
      message.result = result === undefined ? null : result;
    }
    window.postMessage(message, '*');
  }

  window.addEventListener('message', function(event) {
    if (event.source !== window) return;
    var data = event.data;
    if (!data || typeof data.kind !== 'string') return;

    if (data.kind === 'window-control') {
      var shell = resolveHost();
      if (shell && typeof shell.windowControl === 'function') {
        try {
          shell.windowControl(data.action);
        } catch (e) {
          console.error(LABEL + ' window control failed:', e);
        }
      } else {
        console.error(LABEL + ' window control not available');
      }
      return;
    }

    if (data.kind !== 'invoke' || !data.correlationId || !data.operation) return;
    var host = resolveHost();
    if (!host) {
      reply(data.correlationId, null, 'Bridge host not available');
      return;
    }
    var pending;
    try {
      pending = Promise.resolve(host.invoke(data.operation, data.args || {}));
    } catch (e) {
      pending = Promise.reject(e);
    }
    pending.then(function(result) {
      reply(data.correlationId, result, null);
    }, function(error) {
      reply(data.correlationId, null, String(error && error.message ? error.message : error));
    });
  });

  document.addEventListener('click', function(event) {
    var target = event.target;
    while (target && target.tagName !== 'A') {
      target = target.parentElement;
    }
    if (!target || !target.href) return;
    var link;
    try {
      link = new URL(target.href, window.location.href);
    } catch (e) {
      return;
    }
    if (link.protocol !== 'http:' && link.protocol !== 'https:') return;
    var hostname = link.hostname;
    if (hostname === TARGET_HOST || hostname.slice(-(TARGET_HOST.length + 1)) === '.' + TARGET_HOST) return;
    var host = resolveHost();
    if (!host) return;
    event.preventDefault();
    event.stopPropagation();
    Promise.resolve(host.invoke('open_external_url', { url: link.href })).catch(function(error) {
      console.error(LABEL + ' open external failed:', error);
    });
  }, true);

  console.log(LABEL + ' bridge listener initialized');""")


def render(template: Template, **values: str) -> str:
    """자리표시자를 모두 채워 JavaScript 문자열 생성 (누락 시 KeyError)"""
    return template.substitute(**values)
