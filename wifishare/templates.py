# ==========================================
# HTML 템플릿 (render_template_string 용)
# ==========================================
HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; padding: 20px; background: #f5f5f5; }
    .container { max-width: 1200px; margin: 0 auto; background: white; padding: 30px; border-radius: 12px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
    h1 { color: #333; margin-bottom: 10px; }
    .ip-info { background: #e3f2fd; padding: 15px; border-radius: 8px; margin-bottom: 20px; }
    .ip-info strong { color: #1976d2; }
    .ip-list { margin-top: 8px; display: flex; flex-wrap: wrap; gap: 12px; }
    .ip-card { background: white; border-radius: 8px; padding: 10px; text-align: center; }
    .ip-card img { width: 128px; height: 128px; display: block; margin: 0 auto 6px; }
    .ip-item { font-family: monospace; display: block; margin-bottom: 6px; }
    .btn-copy { padding: 4px 10px; border: none; border-radius: 4px; background: #2196F3; color: white; cursor: pointer; font-size: 12px; }
    .upload-section, .speedtest-section { background: #f9f9f9; padding: 20px; border-radius: 8px; margin-bottom: 30px; }
    .upload-area { border: 2px dashed #ccc; padding: 40px; text-align: center; border-radius: 8px; cursor: pointer; transition: all 0.3s; }
    .upload-area:hover { border-color: #4CAF50; background: #f1f8f4; }
    .upload-area.dragover { border-color: #4CAF50; background: #e8f5e9; }
    input[type="file"] { display: none; }
    .btn { padding: 12px 24px; border: none; border-radius: 6px; cursor: pointer; font-size: 16px; font-weight: 500; transition: all 0.3s; }
    .btn-primary { background: #4CAF50; color: white; }
    .btn-primary:hover { background: #45a049; }
    .btn-secondary { background: #2196F3; color: white; margin-left: 10px; }
    .btn-secondary:hover { background: #0b7dda; }
    .btn-small { padding: 6px 12px; font-size: 14px; }
    .btn-download-all, .btn-link-folder { padding: 6px 12px; border: none; border-radius: 6px; background: #673AB7; color: white; cursor: pointer; font-size: 13px; }
    .btn-speedtest { padding: 8px 16px; border: none; border-radius: 6px; background: #FF9800; color: white; cursor: pointer; margin-right: 6px; }
    .btn-speedtest:disabled { background: #ccc; cursor: default; }
    .section { margin-bottom: 30px; }
    .section h2, .section-header { color: #555; margin-bottom: 15px; padding-bottom: 10px; border-bottom: 2px solid #eee; }
    .section-header { display: flex; justify-content: space-between; align-items: center; gap: 8px; flex-wrap: wrap; }
    .file-list { list-style: none; }
    .file-item { padding: 12px; margin-bottom: 8px; background: #fafafa; border-radius: 6px; display: flex; justify-content: space-between; align-items: center; transition: all 0.2s; }
    .file-item:hover { background: #f0f0f0; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
    .file-info { flex: 1; min-width: 0; }
    .file-name { font-weight: 500; color: #333; margin-bottom: 4px; word-break: break-all; }
    .file-meta { font-size: 12px; color: #888; }
    .file-actions { display: flex; gap: 8px; }
    .folder-group { margin-bottom: 10px; }
    .folder-header { display: flex; justify-content: space-between; align-items: center; padding: 10px; background: #ede7f6; border-radius: 6px; cursor: pointer; margin-bottom: 6px; }
    .folder-title { font-weight: 600; color: #4527a0; }
    .folder-toggle { display: inline-block; margin-right: 6px; transition: transform 0.2s; }
    .folder-toggle.collapsed { transform: rotate(-90deg); }
    .folder-content.collapsed { display: none; }
    .progress-bar { width: 100%; height: 4px; background: #e0e0e0; border-radius: 2px; overflow: hidden; margin-top: 10px; display: none; }
    .progress-fill { height: 100%; width: 0%; background: #4CAF50; transition: width 0.3s; }
    .status-message { padding: 12px; border-radius: 6px; margin-top: 15px; display: none; }
    .status-success { background: #d4edda; color: #155724; border: 1px solid #c3e6cb; }
    .status-error { background: #f8d7da; color: #721c24; border: 1px solid #f5c6cb; }
    .speedtest-results { display: flex; gap: 20px; margin: 12px 0; flex-wrap: wrap; }
    .speedtest-value { font-size: 24px; font-weight: 600; color: #333; }
    .speedtest-label { font-size: 12px; color: #888; }
    .empty-state { text-align: center; padding: 40px; color: #999; }
    @media (max-width: 768px) {
      body { padding: 10px; }
      .container { padding: 16px; }
      h1 { font-size: 24px; }
      h2 { font-size: 20px; }
      .file-item { flex-direction: column; align-items: flex-start; gap: 8px; }
      .btn-secondary { margin-left: 0; margin-top: 8px; }
    }
    @media (max-width: 480px) {
      h1 { font-size: 20px; }
      h2 { font-size: 18px; }
      .upload-area { padding: 20px; }
    }
  </style>
</head>
<body>
{% macro file_item(directory, file, label) %}
  <li class="file-item">
    <div class="file-info">
      <div class="file-name">📄 {{ label }}</div>
      <div class="file-meta">{{ file.size | format_size }} • {{ file.mod_time }}</div>
    </div>
    <div class="file-actions">
      <button class="btn btn-primary btn-small" data-path="{{ file.path }}" onclick="downloadFile('{{ directory }}', this.dataset.path)">Download</button>
    </div>
  </li>
{% endmacro %}
{% macro render_folder(node, level) %}
  {% for sub in node.subfolders.values() %}
  {% set folder_id = 'folder-' ~ (sub.path | folder_id) %}
  <div class="folder-group" style="margin-left: {{ level * 20 }}px;">
    <div class="folder-header" onclick="toggleFolder('{{ folder_id }}')">
      <div>
        <span class="folder-toggle" id="toggle-{{ folder_id }}">▼</span>
        <span class="folder-title">📁 {{ sub.name }}</span>
      </div>
      <button class="btn-download-all" data-path="{{ sub.path }}" onclick="event.stopPropagation(); downloadFolder(this.dataset.path)">
        📦 Download All ({{ sub.total_size | format_size }})
      </button>
    </div>
    <div class="folder-content" id="{{ folder_id }}">
      {% if sub.files %}
      <ul class="file-list">
        {% for file in sub.files %}{{ file_item('exportable', file, file.name) }}{% endfor %}
      </ul>
      {% endif %}
      {{ render_folder(sub, level + 1) }}
    </div>
  </div>
  {% endfor %}
  {% if level == 0 and node.files %}
  <div class="folder-content">
    <ul class="file-list">
      {% for file in node.files %}{{ file_item('exportable', file, file.name) }}{% endfor %}
    </ul>
  </div>
  {% endif %}
{% endmacro %}
  <div class="container">
    <h1>📁 {{ title }}</h1>

    <div class="ip-info">
      <strong>📡 Server Running On:</strong>
      <div class="ip-list">
        {% for entry in urls %}
        <div class="ip-card">
          <img src="{{ entry.qr }}" alt="QR code for {{ entry.url }}">
          <span class="ip-item">{{ entry.url }}</span>
          <button class="btn-copy" data-url="{{ entry.url }}" onclick="copyToClipboard(this)">📋 Copy URL</button>
        </div>
        {% endfor %}
      </div>
      <p style="margin-top: 10px; font-size: 14px; color: #666;">Scan a QR code or open one of these addresses from your phone</p>
    </div>

    <div class="upload-section">
      <h2>⬆️ Upload Files</h2>
      <div class="upload-area" id="uploadArea">
        <p style="font-size: 18px; color: #666; margin-bottom: 10px;">📤 Drag & drop files here</p>
        <p style="color: #999; margin-bottom: 15px;">or</p>
        <button class="btn btn-primary" onclick="document.getElementById('fileInput').click()">Choose Files</button>
        <button class="btn btn-secondary" onclick="document.getElementById('folderInput').click()">Choose Folder</button>
        <input type="file" id="fileInput" multiple>
        <input type="file" id="folderInput" webkitdirectory directory>
      </div>
      <div class="progress-bar" id="progressBar"><div class="progress-fill" id="progressFill"></div></div>
      <div class="status-message" id="statusMessage"></div>
    </div>

    <div class="speedtest-section">
      <h2>⚡ Network Speed Test</h2>
      <div class="speedtest-results">
        <div><div class="speedtest-value"><span id="latency">-</span> ms</div><div class="speedtest-label">Latency</div></div>
        <div><div class="speedtest-value"><span id="downloadSpeed">-</span> Mbps</div><div class="speedtest-label">Download</div></div>
        <div><div class="speedtest-value"><span id="uploadSpeed">-</span> Mbps</div><div class="speedtest-label">Upload</div></div>
      </div>
      <button class="btn-speedtest" onclick="runSpeedTest('download')">Test Download</button>
      <button class="btn-speedtest" onclick="runSpeedTest('upload')">Test Upload</button>
      <button class="btn-speedtest" onclick="runSpeedTest('both')">Test Both</button>
      <div class="progress-bar" id="speedtestProgress"><div class="progress-fill" id="speedtestProgressBar"></div></div>
    </div>

    <div class="section">
      <div class="section-header">
        <h2 style="border: none; margin: 0; padding: 0;">📤 Exportable Files (./data/exportable)</h2>
        <div>
          <button class="btn-link-folder" onclick="linkFolder()">🔗 Link Folder</button>
          {% if exportable_files %}
          <button class="btn-download-all" onclick="downloadFolder('.')">📦 Download All ({{ exportable_tree.total_size | format_size }})</button>
          {% endif %}
        </div>
      </div>
      {% if exportable_files %}
        {{ render_folder(exportable_tree, 0) }}
      {% else %}
        <div class="empty-state">No files in ./data/exportable directory</div>
      {% endif %}
    </div>

    <div class="section">
      <h2>📥 Imported Files (./data/imported)</h2>
      {% if imported_files %}
      <ul class="file-list">
        {% for file in imported_files %}{{ file_item('imported', file, file.path) }}{% endfor %}
      </ul>
      {% else %}
        <div class="empty-state">No files in ./data/imported directory</div>
      {% endif %}
    </div>
  </div>

  <script>
    const uploadArea = document.getElementById('uploadArea');
    const fileInput = document.getElementById('fileInput');
    const folderInput = document.getElementById('folderInput');
    const progressBar = document.getElementById('progressBar');
    const progressFill = document.getElementById('progressFill');
    const statusMessage = document.getElementById('statusMessage');

    // 실시간 갱신 (Server-Sent Events)
    let refreshTimer;
    function connectEvents() {
      const source = new EventSource('/events');
      source.onmessage = (event) => {
        try {
          const message = JSON.parse(event.data);
          if (message.type === 'file-change') {
            // 연속된 변경을 모아서 한 번만 새로고침
            clearTimeout(refreshTimer);
            refreshTimer = setTimeout(() => window.location.reload(), 1000);
          }
        } catch (error) {
          console.error('Event message error:', error);
        }
      };
      source.onerror = () => {
        if (source.readyState === EventSource.CLOSED) {
          setTimeout(connectEvents, 3000);
        }
      };
    }
    connectEvents();

    // 속도 측정
    async function measureLatency() {
      const start = performance.now();
      try {
        await fetch('/speedtest/ping', {cache: 'no-store'});
        return Math.round(performance.now() - start);
      } catch (error) {
        console.error('Latency test failed:', error);
        return 0;
      }
    }

    async function testDownloadSpeed() {
      const sizes = [1, 5, 10];
      let totalSpeed = 0, tests = 0;
      for (const size of sizes) {
        try {
          const start = performance.now();
          const response = await fetch('/speedtest/download?size=' + size, {cache: 'no-store'});
          const blob = await response.blob();
          const duration = (performance.now() - start) / 1000;
          totalSpeed += (blob.size * 8) / duration / 1000000;
          tests++;
        } catch (error) {
          console.error('Download test ' + size + 'MB failed:', error);
        }
      }
      return tests > 0 ? totalSpeed / tests : 0;
    }

    async function testUploadSpeed() {
      const sizes = [1, 5, 10];
      let totalSpeed = 0, tests = 0;
      for (const size of sizes) {
        try {
          const formData = new FormData();
          formData.append('file', new Blob([new Uint8Array(size * 1024 * 1024)]), 'test.bin');
          const start = performance.now();
          await fetch('/speedtest/upload', {method: 'POST', body: formData});
          const duration = (performance.now() - start) / 1000;
          totalSpeed += (size * 8) / duration;
          tests++;
        } catch (error) {
          console.error('Upload test ' + size + 'MB failed:', error);
        }
      }
      return tests > 0 ? totalSpeed / tests : 0;
    }

    async function runSpeedTest(type) {
      const buttons = document.querySelectorAll('.btn-speedtest');
      buttons.forEach(btn => btn.disabled = true);
      const progress = document.getElementById('speedtestProgress');
      const bar = document.getElementById('speedtestProgressBar');
      progress.style.display = 'block';
      bar.style.width = '0%';
      try {
        document.getElementById('latency').textContent = '...';
        document.getElementById('latency').textContent = await measureLatency();
        bar.style.width = '20%';
        if (type === 'download' || type === 'both') {
          document.getElementById('downloadSpeed').textContent = '...';
          bar.style.width = '40%';
          document.getElementById('downloadSpeed').textContent = (await testDownloadSpeed()).toFixed(2);
          bar.style.width = '60%';
        }
        if (type === 'upload' || type === 'both') {
          document.getElementById('uploadSpeed').textContent = '...';
          bar.style.width = '70%';
          document.getElementById('uploadSpeed').textContent = (await testUploadSpeed()).toFixed(2);
        }
        bar.style.width = '100%';
        setTimeout(() => { progress.style.display = 'none'; }, 1000);
      } catch (error) {
        alert('Speed test failed: ' + error.message);
      } finally {
        buttons.forEach(btn => btn.disabled = false);
      }
    }

    function copyToClipboard(btn) {
      navigator.clipboard.writeText(btn.dataset.url).then(() => {
        const originalText = btn.textContent;
        btn.textContent = '✓ Copied!';
        btn.style.background = '#4CAF50';
        setTimeout(() => {
          btn.textContent = originalText;
          btn.style.background = '#2196F3';
        }, 2000);
      }).catch(err => alert('Failed to copy: ' + err));
    }

    // 드래그 앤 드롭
    uploadArea.addEventListener('dragover', (e) => { e.preventDefault(); uploadArea.classList.add('dragover'); });
    uploadArea.addEventListener('dragleave', () => uploadArea.classList.remove('dragover'));
    uploadArea.addEventListener('drop', (e) => {
      e.preventDefault();
      uploadArea.classList.remove('dragover');
      uploadFiles(Array.from(e.dataTransfer.files));
    });
    fileInput.addEventListener('change', (e) => { uploadFiles(Array.from(e.target.files)); e.target.value = ''; });
    folderInput.addEventListener('change', (e) => { uploadFiles(Array.from(e.target.files)); e.target.value = ''; });

    function uploadFiles(files) {
      if (files.length === 0) return;
      progressBar.style.display = 'block';
      progressFill.style.width = '0%';
      statusMessage.style.display = 'none';

      const fd = new FormData();
      files.forEach(file => {
        const path = file.webkitRelativePath || file.name;
        fd.append('files', file, path);
        fd.append('paths', path);
      });

      const xhr = new XMLHttpRequest();
      xhr.open('POST', '/upload');
      xhr.upload.onprogress = e => {
        if (e.lengthComputable) progressFill.style.width = (e.loaded / e.total * 100) + '%';
      };
      xhr.onload = () => {
        let d = {};
        try { d = JSON.parse(xhr.responseText); } catch (err) { d = {error: xhr.responseText}; }
        if (xhr.status === 200 && d.success) {
          showStatus('✅ Successfully uploaded ' + d.count + ' file(s)!', 'success');
          setTimeout(() => window.location.reload(), 1500);
        } else {
          showStatus('❌ Upload failed: ' + (d.error || xhr.status), 'error');
        }
        hideProgress();
      };
      xhr.onerror = () => { showStatus('❌ Upload error: network failure', 'error'); hideProgress(); };
      xhr.send(fd);
    }

    function hideProgress() {
      setTimeout(() => { progressBar.style.display = 'none'; progressFill.style.width = '0%'; }, 2000);
    }

    function showStatus(message, type) {
      statusMessage.textContent = message;
      statusMessage.className = 'status-message status-' + type;
      statusMessage.style.display = 'block';
    }

    function downloadFile(directory, filepath) {
      // 세그먼트별로 인코딩해서 '/' 유지
      const encodedPath = filepath.split('/').map(segment => encodeURIComponent(segment)).join('/');
      window.location.href = '/download/' + directory + '/' + encodedPath;
    }

    function downloadFolder(folderPath) {
      const encodedPath = folderPath.split('/').map(segment => encodeURIComponent(segment)).join('/');
      window.location.href = '/download-folder/' + encodedPath;
    }

    function toggleFolder(folderId) {
      const content = document.getElementById(folderId);
      const toggle = document.getElementById('toggle-' + folderId);
      if (content && toggle) {
        content.classList.toggle('collapsed');
        toggle.classList.toggle('collapsed');
      }
    }

    async function linkFolder() {
      const folderPath = prompt('Enter the absolute path to the folder you want to link:');
      if (!folderPath) return;
      try {
        const response = await fetch('/link-folder', {
          method: 'POST',
          headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({folderPath})
        });
        const d = await response.json();
        if (response.ok) {
          alert('✅ ' + d.message);
          window.location.reload();
        } else {
          alert('❌ Failed to link folder: ' + d.error);
        }
      } catch (error) {
        alert('❌ Error: ' + error.message);
      }
    }
  </script>
</body>
</html>
"""
